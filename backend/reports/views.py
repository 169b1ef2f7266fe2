import calendar
import logging
from decimal import Decimal
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.db.models import Sum, Count, F, DecimalField, ExpressionWrapper
from django.db.models.functions import ExtractMonth
from django.shortcuts import get_object_or_404
from django.utils import timezone

from backend.catalog.models import Product
from backend.catalog.serializers import ProductSerializer
from backend.core.cache_utils import get_cached_report, cache_report, DASHBOARD_CACHE_TTL, REPORTS_CACHE_TTL
from backend.core.permissions import StoreRolePermission
from backend.core.utils import decimal_to_str
from backend.orders.models import Order, OrderItem
from backend.stores.models import Store

logger = logging.getLogger('backend.reports')

POPULAR_SORTS = {
    'featured': None,
    'priceLowToHigh': 'price',
    'priceHighToLow': '-price',
    'newest': '-created_at',
}


def graph_revenue(store_id, year):
    """
    Revenue per month of ``year`` over paid orders, priced at the current
    product price times the ordered quantity.
    """
    line_total = ExpressionWrapper(
        F('product__price') * F('quantity'),
        output_field=DecimalField(max_digits=14, decimal_places=2)
    )
    monthly = OrderItem.objects.filter(
        order__store_id=store_id,
        order__is_paid=True,
        order__created_at__year=year,
    ).annotate(
        month=ExtractMonth('order__created_at')
    ).values('month').annotate(
        total=Sum(line_total)
    )
    totals = {row['month']: row['total'] or Decimal('0') for row in monthly}
    return [
        {'name': calendar.month_abbr[month], 'total': round(float(totals.get(month, 0)), 2)}
        for month in range(1, 13)
    ]


@api_view(['GET'])
@permission_classes([StoreRolePermission])
def dashboard(request, store_id):
    """Store overview: revenue, sales, deliveries, stock and pending orders"""
    store = get_object_or_404(Store, pk=store_id)
    year = timezone.localdate().year

    cached_data, cache_key = get_cached_report('dashboard', store.id, year)
    if cached_data is not None:
        logger.debug(f"Dashboard cache hit for store {store.id}")
        return Response(cached_data)

    orders = Order.objects.filter(store=store)
    paid = orders.filter(is_paid=True).aggregate(
        total=Sum('total_amount_item_and_shipping'),
        count=Count('id'),
    )

    pending_orders = [
        {
            'id': order['id'],
            'client_name': order['client_name'],
            'client_email': order['client_email'],
            'total_amount_item_and_shipping': decimal_to_str(order['total_amount_item_and_shipping']),
        }
        for order in orders.filter(is_paid=False).order_by('-created_at').values(
            'id', 'client_name', 'client_email', 'total_amount_item_and_shipping'
        )
    ]

    data = {
        'total_revenue': float(paid['total'] or Decimal('0.00')),
        'sales_count': paid['count'],
        'delivered_count': orders.filter(order_status=True).count(),
        'stock_count': Product.objects.filter(store=store, is_archived=False).count(),
        'pending_orders': pending_orders,
        'graph_revenue': graph_revenue(store.id, year),
    }
    cache_report(cache_key, data, DASHBOARD_CACHE_TTL)
    return Response(data)


@api_view(['GET'])
@permission_classes([StoreRolePermission])
def accounting_report(request, store_id):
    """Financial overview over paid orders"""
    store = get_object_or_404(Store, pk=store_id)

    cached_data, cache_key = get_cached_report('accounting', store.id)
    if cached_data is not None:
        return Response(cached_data)

    paid_orders = Order.objects.filter(store=store, is_paid=True).order_by('-created_at')

    total_revenue = Decimal('0.00')
    monthly = {}
    for created_at, amount in paid_orders.values_list('created_at', 'total_amount_item_and_shipping'):
        amount = amount or Decimal('0.00')
        total_revenue += amount
        month = calendar.month_name[timezone.localtime(created_at).month]
        # Insertion order follows the newest-first scan
        monthly[month] = monthly.get(month, Decimal('0.00')) + amount
    monthly_revenue = [{'name': name, 'total': float(total)} for name, total in monthly.items()]

    categories = OrderItem.objects.filter(
        order__store=store, order__is_paid=True
    ).values('product__category__name').annotate(
        value=Sum('total_item_amount')
    ).order_by('-value')
    category_distribution = [
        {
            'name': row['product__category__name'] or 'Uncategorized',
            'value': float(row['value'] or 0),
        }
        for row in categories
    ]

    data = {
        'total_revenue': float(total_revenue),
        'total_orders': paid_orders.count(),
        'total_products': Product.objects.filter(store=store).count(),
        'monthly_revenue': monthly_revenue,
        'category_distribution': category_distribution,
        'sales_this_month': monthly_revenue[-1]['total'] if monthly_revenue else 0,
    }
    cache_report(cache_key, data, REPORTS_CACHE_TTL)
    return Response(data)


@api_view(['GET'])
@permission_classes([AllowAny])
def popular_products(request, store_id):
    """Featured storefront products with an optional sort order"""
    store = get_object_or_404(Store, pk=store_id)
    sort = request.query_params.get('sort', 'featured')
    if sort not in POPULAR_SORTS:
        return Response({'error': f'Invalid sort: {sort}'}, status=status.HTTP_400_BAD_REQUEST)

    queryset = Product.objects.filter(store=store, is_featured=True, is_archived=False).select_related(
        'category', 'category__billboard', 'size', 'color', 'uom'
    ).prefetch_related('images')
    if POPULAR_SORTS[sort]:
        queryset = queryset.order_by(POPULAR_SORTS[sort], '-created_at')
    return Response(ProductSerializer(queryset, many=True).data)
