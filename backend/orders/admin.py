from django.contrib import admin
from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ['product', 'quantity', 'total_item_amount']
    raw_id_fields = ['product']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'company_name', 'client_name', 'store', 'total_amount_item_and_shipping',
                    'is_paid', 'order_status', 'created_at']
    list_filter = ['is_paid', 'order_status', 'store', 'created_at']
    search_fields = ['po_number', 'company_name', 'client_name', 'client_email']
    ordering = ['-created_at']
    readonly_fields = ['paid_at', 'delivered_at', 'created_at', 'updated_at']
    inlines = [OrderItemInline]
    fieldsets = (
        ('Order', {
            'fields': ('store', 'po_number', 'company_name', 'address', 'contact_number',
                       'client_name', 'client_email', 'attached_po_url')
        }),
        ('Amounts', {
            'fields': ('shipping_fee', 'total_amount_item_and_shipping')
        }),
        ('Accounting', {
            'fields': ('is_paid', 'paid_at', 'acctg_remarks', 'acctg_attached_url')
        }),
        ('Delivery', {
            'fields': ('order_status', 'delivered_at', 'store_remarks', 'store_attached_url')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
