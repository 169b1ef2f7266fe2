from decimal import Decimal
from django.utils import timezone
from rest_framework import serializers
from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    product_id = serializers.IntegerField(read_only=True)
    bar_code = serializers.CharField(source='product.bar_code', read_only=True)
    name = serializers.CharField(source='product.name', read_only=True)
    item_desc = serializers.CharField(source='product.item_desc', read_only=True)
    price = serializers.DecimalField(source='product.price', max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product_id', 'bar_code', 'name', 'item_desc', 'price', 'quantity', 'total_item_amount']


class OrderListSerializer(serializers.ModelSerializer):
    products = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'store_id', 'company_name', 'po_number', 'client_name', 'client_email', 'contact_number',
                  'address', 'products', 'is_paid', 'order_status', 'shipping_fee',
                  'total_amount_item_and_shipping', 'created_at']

    def get_products(self, obj):
        return ', '.join(item.product.name for item in obj.order_items.all())


class OrderSerializer(serializers.ModelSerializer):
    """Full order with its line items"""
    order_items = OrderItemSerializer(many=True, read_only=True)
    items_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'store_id', 'company_name', 'po_number', 'address', 'contact_number', 'client_name',
                  'client_email', 'is_paid', 'order_status', 'shipping_fee', 'total_amount_item_and_shipping',
                  'items_total', 'attached_po_url', 'acctg_remarks', 'acctg_attached_url', 'store_remarks',
                  'store_attached_url', 'paid_at', 'delivered_at', 'order_items', 'created_at', 'updated_at']


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class CheckoutSerializer(serializers.Serializer):
    """Storefront checkout payload"""
    company_name = serializers.CharField(max_length=255)
    po_number = serializers.CharField(max_length=100)
    address = serializers.CharField()
    contact_number = serializers.CharField(max_length=50)
    client_name = serializers.CharField(max_length=200)
    client_email = serializers.EmailField()
    attached_po_url = serializers.URLField(max_length=500, required=False, allow_blank=True, default='')
    shipping_fee = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'),
                                            required=False, default=Decimal('0.00'))
    items = CheckoutItemSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('Product ids are required')
        return value


class OrderUpdateSerializer(serializers.ModelSerializer):
    """
    Back office order update.

    Marking an order paid stamps ``paid_at`` and keeps the accounting remarks
    and attachment; marking it delivered stamps ``delivered_at`` with the
    store remarks and attachment. A shipping fee change recomputes the total.
    """

    class Meta:
        model = Order
        fields = ['company_name', 'po_number', 'address', 'contact_number', 'client_name', 'client_email',
                  'attached_po_url', 'shipping_fee', 'is_paid', 'acctg_remarks', 'acctg_attached_url',
                  'order_status', 'store_remarks', 'store_attached_url']
        extra_kwargs = {'shipping_fee': {'min_value': Decimal('0')}}

    def update(self, instance, validated_data):
        now = timezone.now()
        if 'is_paid' in validated_data and validated_data['is_paid'] != instance.is_paid:
            instance.paid_at = now if validated_data['is_paid'] else None
        if 'order_status' in validated_data and validated_data['order_status'] != instance.order_status:
            instance.delivered_at = now if validated_data['order_status'] else None
        if 'shipping_fee' in validated_data:
            instance.total_amount_item_and_shipping = instance.items_total + validated_data['shipping_fee']
        return super().update(instance, validated_data)
