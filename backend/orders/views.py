import logging
from decimal import Decimal
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Q, Count
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone

from backend.catalog.models import Product
from backend.catalog.spreadsheet import build_workbook, XLSX_CONTENT_TYPE
from backend.core.permissions import StoreRolePermission, IsCheckoutRequest
from backend.core.utils import create_audit_log
from backend.stores.models import Store
from .models import Order, OrderItem
from .serializers import (
    OrderSerializer, OrderListSerializer, CheckoutSerializer, OrderUpdateSerializer
)

logger = logging.getLogger('backend.orders')

STATUS_FILTERS = {
    'delivered': Q(order_status=True),
    'processing': Q(order_status=False),
    'paid': Q(is_paid=True),
    'unpaid': Q(is_paid=False),
}


def _order_queryset(store_id):
    return Order.objects.filter(store_id=store_id).prefetch_related('order_items__product')


def _filter_orders(request, queryset):
    """Apply the ``search`` and ``status`` query parameters"""
    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(Q(po_number__icontains=search) | Q(company_name__icontains=search))

    status_filter = request.query_params.get('status', 'all')
    if status_filter in STATUS_FILTERS:
        queryset = queryset.filter(STATUS_FILTERS[status_filter])
    return queryset


def _order_summary(store_id):
    counts = Order.objects.filter(store_id=store_id).aggregate(
        total=Count('id'),
        completed=Count('id', filter=Q(order_status=True)),
        processing=Count('id', filter=Q(order_status=False)),
    )
    return counts


@api_view(['GET', 'POST'])
@permission_classes([IsCheckoutRequest | StoreRolePermission])
def order_list_create(request, store_id):
    """List the store's orders (back office) or place an order (storefront checkout)"""
    store = get_object_or_404(Store, pk=store_id)

    if request.method == 'GET':
        status_filter = request.query_params.get('status', 'all')
        if status_filter != 'all' and status_filter not in STATUS_FILTERS:
            return Response({'error': f'Invalid status: {status_filter}'}, status=status.HTTP_400_BAD_REQUEST)

        queryset = _filter_orders(request, _order_queryset(store.id)).order_by('-created_at')

        try:
            page = int(request.query_params.get('page', 1))
            limit = int(request.query_params.get('limit', 50))
        except ValueError:
            return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)

        paginator = Paginator(queryset, max(1, min(limit, 500)))
        page_obj = paginator.get_page(page)

        serializer = OrderListSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'summary': _order_summary(store.id),
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': paginator.per_page,
            'total_pages': paginator.num_pages,
        })

    serializer = CheckoutSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    items = data.pop('items')

    product_ids = {item['product_id'] for item in items}
    products = {
        p.id: p for p in Product.objects.filter(store=store, id__in=product_ids, is_archived=False)
    }
    missing = sorted(product_ids - set(products))
    if missing:
        return Response({'error': f'Products not available: {missing}'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        order = Order.objects.create(store=store, **data)
        order_items = []
        for item in items:
            product = products[item['product_id']]
            order_items.append(OrderItem(
                order=order,
                product=product,
                quantity=item['quantity'],
                total_item_amount=product.price * item['quantity'],
            ))
        OrderItem.objects.bulk_create(order_items)
        items_total = sum((oi.total_item_amount for oi in order_items), Decimal('0.00'))
        order.total_amount_item_and_shipping = items_total + order.shipping_fee
        order.save(update_fields=['total_amount_item_and_shipping'])

    logger.info(f"Order {order.id} ({order.po_number}) placed in store {store.id} by {order.client_email}")
    order = _order_queryset(store.id).get(pk=order.pk)
    return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([StoreRolePermission])
def order_detail(request, store_id, pk):
    """Retrieve, update (paid / delivered) or delete an order"""
    order = get_object_or_404(_order_queryset(store_id), pk=pk)

    if request.method == 'GET':
        return Response(OrderSerializer(order).data)

    elif request.method == 'PATCH':
        serializer = OrderUpdateSerializer(order, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        was_paid = order.is_paid
        was_delivered = order.order_status
        with transaction.atomic():
            order = serializer.save()

        if order.is_paid and not was_paid:
            create_audit_log(request=request, action='order_paid', model_name='Order', object_id=order.id,
                             object_name=order.po_number, store_id=order.store_id,
                             changes={'acctg_remarks': order.acctg_remarks,
                                      'acctg_attached_url': order.acctg_attached_url})
        if order.order_status and not was_delivered:
            create_audit_log(request=request, action='order_delivered', model_name='Order', object_id=order.id,
                             object_name=order.po_number, store_id=order.store_id,
                             changes={'store_remarks': order.store_remarks,
                                      'store_attached_url': order.store_attached_url})
        if order.is_paid == was_paid and order.order_status == was_delivered:
            create_audit_log(request=request, action='update', model_name='Order', object_id=order.id,
                             object_name=order.po_number, store_id=order.store_id,
                             changes={k: str(v) for k, v in serializer.validated_data.items()})

        logger.info(f"User {request.user.email} updated order {order.id}")
        order = _order_queryset(store_id).get(pk=pk)
        return Response(OrderSerializer(order).data)

    else:  # DELETE
        po_number = order.po_number
        order.delete()
        create_audit_log(request=request, action='delete', model_name='Order', object_id=pk,
                         object_name=po_number, store_id=int(store_id))
        logger.info(f"User {request.user.email} deleted order {pk}")
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([StoreRolePermission])
def order_export(request, store_id):
    """Download the filtered order list as .xlsx"""
    store = get_object_or_404(Store, pk=store_id)
    queryset = _filter_orders(request, _order_queryset(store.id)).order_by('-created_at')

    headers = ['Order ID', 'PO Number', 'Company', 'Client', 'Email', 'Contact', 'Address', 'Products',
               f'Shipping Fee ({settings.CURRENCY})', f'Total ({settings.CURRENCY})', 'Paid', 'Delivered', 'Created']
    rows = []
    for order in queryset:
        rows.append([
            order.id,
            order.po_number,
            order.company_name,
            order.client_name,
            order.client_email,
            order.contact_number,
            order.address,
            ', '.join(item.product.name for item in order.order_items.all()),
            float(order.shipping_fee or 0),
            float(order.total_amount_item_and_shipping or 0),
            'Yes' if order.is_paid else 'No',
            'Yes' if order.order_status else 'No',
            timezone.localtime(order.created_at).strftime('%Y-%m-%d %H:%M'),
        ])
    output = build_workbook('Orders', headers, rows, money_columns=(9, 10))

    response = HttpResponse(output.getvalue(), content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="orders-{store.id}-{timezone.now():%Y%m%d}.xlsx"'
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_orders(request):
    """Orders placed with the caller's e-mail address, any store"""
    orders = Order.objects.filter(client_email__iexact=request.user.email).prefetch_related(
        'order_items__product'
    ).order_by('-created_at')
    return Response(OrderSerializer(orders, many=True).data)
