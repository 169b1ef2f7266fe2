from django.db import models
from decimal import Decimal


class Order(models.Model):
    """Customer order placed through the storefront checkout"""
    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='orders')
    company_name = models.CharField(max_length=255)
    po_number = models.CharField(max_length=100, db_index=True)
    address = models.TextField()
    contact_number = models.CharField(max_length=50)
    client_name = models.CharField(max_length=200)
    client_email = models.EmailField(db_index=True)
    is_paid = models.BooleanField(default=False)
    order_status = models.BooleanField(default=False, help_text="True once the order is delivered")
    shipping_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount_item_and_shipping = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    attached_po_url = models.URLField(max_length=500, blank=True)
    acctg_remarks = models.TextField(blank=True)
    acctg_attached_url = models.URLField(max_length=500, blank=True)
    store_remarks = models.TextField(blank=True)
    store_attached_url = models.URLField(max_length=500, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.po_number} - {self.company_name}"

    @property
    def items_total(self):
        """Sum of line totals, null lines count as zero"""
        return sum((item.total_item_amount or Decimal('0.00') for item in self.order_items.all()), Decimal('0.00'))

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'is_paid'], name='order_store_paid_idx'),
            models.Index(fields=['store', 'order_status'], name='order_store_status_idx'),
            models.Index(fields=['-created_at'], name='order_created_idx'),
        ]


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='order_items')
    product = models.ForeignKey('catalog.Product', on_delete=models.PROTECT, related_name='order_items')
    quantity = models.PositiveIntegerField(default=1)
    total_item_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.order.po_number} - {self.product.name} x{self.quantity}"

    class Meta:
        db_table = 'order_items'
        ordering = ['id']
