import logging
from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import ProtectedError
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone

from backend.core.cache_signals import suspend_cache_signals
from backend.core.cache_utils import invalidate_reports_cache
from backend.core.permissions import (
    StoreRolePermission, IsStoreMember, IsReadOnlyRequest, is_store_member
)
from backend.core.utils import create_audit_log, decimal_to_str
from backend.stores.models import Store
from .filters import ProductFilter
from .models import Billboard, Category, Size, Color, UnitOfMeasure, Product
from .serializers import (
    BillboardSerializer, CategorySerializer, SizeSerializer, ColorSerializer, UnitOfMeasureSerializer,
    ProductSerializer, ProductWriteSerializer, BulkProductRowSerializer, PriceUpdateSerializer,
    ProductFieldsUpdateSerializer
)
from .spreadsheet import (
    SpreadsheetError, read_product_rows, build_products_workbook, XLSX_CONTENT_TYPE
)

logger = logging.getLogger('backend.catalog')


def _entity_list_create(request, store_id, model, serializer_class):
    store = get_object_or_404(Store, pk=store_id)

    if request.method == 'GET':
        queryset = model.objects.filter(store=store)
        if model is Category:
            queryset = queryset.select_related('billboard')
        serializer = serializer_class(queryset, many=True)
        return Response(serializer.data)

    serializer = serializer_class(data=request.data, context={'store': store})
    if serializer.is_valid():
        instance = serializer.save()
        logger.info(f"User {request.user.email} created {model.__name__} {instance.pk} in store {store.id}")
        create_audit_log(request=request, action='create', model_name=model.__name__,
                         object_id=instance.pk, object_name=str(instance), store_id=store.id)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _entity_detail(request, store_id, pk, model, serializer_class):
    instance = get_object_or_404(model, pk=pk, store_id=store_id)

    if request.method == 'GET':
        serializer = serializer_class(instance)
        return Response(serializer.data)
    elif request.method == 'PATCH':
        serializer = serializer_class(instance, data=request.data, partial=True,
                                      context={'store': instance.store})
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name=model.__name__,
                             object_id=instance.pk, object_name=str(instance), store_id=instance.store_id,
                             changes={k: str(v) for k, v in serializer.validated_data.items()})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        object_name = str(instance)
        try:
            instance.delete()
        except ProtectedError:
            logger.warning(f"{model.__name__} {pk} is still in use and cannot be deleted")
            return Response(
                {'error': f'{model._meta.verbose_name.capitalize()} is still in use. Remove the records using it first.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request=request, action='delete', model_name=model.__name__,
                         object_id=pk, object_name=object_name, store_id=int(store_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


# Billboard views
@api_view(['GET', 'POST'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def billboard_list_create(request, store_id):
    """List the store's billboards or create a new billboard"""
    return _entity_list_create(request, store_id, Billboard, BillboardSerializer)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def billboard_detail(request, store_id, pk):
    return _entity_detail(request, store_id, pk, Billboard, BillboardSerializer)


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def category_list_create(request, store_id):
    """List the store's categories or create a new category"""
    return _entity_list_create(request, store_id, Category, CategorySerializer)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def category_detail(request, store_id, pk):
    return _entity_detail(request, store_id, pk, Category, CategorySerializer)


# Size views
@api_view(['GET', 'POST'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def size_list_create(request, store_id):
    return _entity_list_create(request, store_id, Size, SizeSerializer)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def size_detail(request, store_id, pk):
    return _entity_detail(request, store_id, pk, Size, SizeSerializer)


# Color views
@api_view(['GET', 'POST'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def color_list_create(request, store_id):
    return _entity_list_create(request, store_id, Color, ColorSerializer)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def color_detail(request, store_id, pk):
    return _entity_detail(request, store_id, pk, Color, ColorSerializer)


# Unit of measure views
@api_view(['GET', 'POST'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def uom_list_create(request, store_id):
    return _entity_list_create(request, store_id, UnitOfMeasure, UnitOfMeasureSerializer)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def uom_detail(request, store_id, pk):
    return _entity_detail(request, store_id, pk, UnitOfMeasure, UnitOfMeasureSerializer)


# Product views
def _product_queryset(store_id):
    return Product.objects.filter(store_id=store_id).select_related(
        'category', 'category__billboard', 'size', 'color', 'uom'
    ).prefetch_related('images')


@api_view(['GET', 'POST'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def product_list_create(request, store_id):
    """List products (storefront and back office) or create a single product"""
    store = get_object_or_404(Store, pk=store_id)

    if request.method == 'GET':
        queryset = _product_queryset(store.id)
        if not is_store_member(request.user, store.id):
            # Storefront visitors never see archived products
            queryset = queryset.filter(is_archived=False)

        filterset = ProductFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = filterset.qs.order_by('-created_at')
        return Response(ProductSerializer(queryset, many=True).data)

    serializer = ProductWriteSerializer(data=request.data, context={'store': store})
    if not serializer.is_valid():
        logger.warning(f"Product creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        product = serializer.save()
    logger.info(f"User {request.user.email} created product {product.id} in store {store.id}")
    create_audit_log(request=request, action='create', model_name='Product', object_id=product.id,
                     object_name=product.name, store_id=store.id,
                     changes={'bar_code': product.bar_code, 'price': decimal_to_str(product.price)})
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def product_detail(request, store_id, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(_product_queryset(store_id), pk=pk)

    if request.method == 'GET':
        return Response(ProductSerializer(product).data)

    elif request.method == 'PATCH':
        serializer = ProductWriteSerializer(product, data=request.data, partial=True,
                                            context={'store': product.store})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        old_data = {
            'name': product.name,
            'bar_code': product.bar_code,
            'price': decimal_to_str(product.price),
            'is_archived': product.is_archived,
        }
        with transaction.atomic():
            serializer.save()
        product = _product_queryset(store_id).get(pk=pk)
        new_data = {
            'name': product.name,
            'bar_code': product.bar_code,
            'price': decimal_to_str(product.price),
            'is_archived': product.is_archived,
        }
        changes = {k: {'old': old_data[k], 'new': new_data[k]} for k in old_data if old_data[k] != new_data[k]}
        if changes:
            action = 'price_change' if list(changes) == ['price'] else 'update'
            create_audit_log(request=request, action=action, model_name='Product', object_id=product.id,
                             object_name=product.name, store_id=product.store_id, changes=changes)
        return Response(ProductSerializer(product).data)

    else:  # DELETE
        product_name = product.name
        try:
            product.delete()
        except ProtectedError:
            logger.warning(f"Product {pk} is referenced by orders and cannot be deleted")
            return Response({'error': 'Product has orders. Archive it instead.'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='Product', object_id=pk,
                         object_name=product_name, store_id=int(store_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsReadOnlyRequest | StoreRolePermission])
def product_search(request, store_id):
    """Find active products by name (contains) or exact barcode"""
    query = request.query_params.get('q', '').strip()
    if not query:
        return Response({'error': 'Search query is required'}, status=status.HTTP_400_BAD_REQUEST)

    queryset = _product_queryset(store_id).filter(is_archived=False)
    queryset = ProductFilter({'search': query}, queryset=queryset).qs[:settings.PRODUCT_SEARCH_LIMIT]
    return Response(ProductSerializer(queryset, many=True).data)


def _validation_errors_by_row(rows, store):
    """Validate every row, returning (serializers, {row index: errors})"""
    serializers_ok = []
    errors = {}
    for index, row in enumerate(rows):
        serializer = BulkProductRowSerializer(data=row, context={'store': store})
        if serializer.is_valid():
            serializers_ok.append(serializer)
        else:
            errors[index] = serializer.errors
    return serializers_ok, errors


def _create_rows(request, store, row_serializers, action):
    with transaction.atomic(), suspend_cache_signals():
        products = [serializer.save() for serializer in row_serializers]
    invalidate_reports_cache(store.id)
    create_audit_log(request=request, action=action, model_name='Product',
                     object_id=','.join(str(p.id) for p in products[:50]),
                     object_name=f'{len(products)} products', store_id=store.id,
                     changes={'count': len(products)})
    return products


@api_view(['POST'])
@permission_classes([StoreRolePermission])
def product_bulk_create(request, store_id):
    """Create many products at once; all rows are saved or none"""
    store = get_object_or_404(Store, pk=store_id)
    rows = request.data.get('products')
    if not isinstance(rows, list) or not rows:
        return Response({'error': 'Products data is required'}, status=status.HTTP_400_BAD_REQUEST)

    row_serializers, errors = _validation_errors_by_row(rows, store)
    if errors:
        first_index = min(errors)
        logger.warning(f"Bulk product create rejected, {len(errors)} invalid rows")
        return Response(
            {'error': f'Invalid product at row {first_index}', 'row': first_index, 'errors': errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        products = _create_rows(request, store, row_serializers, 'bulk_create')
    except Exception as e:
        logger.error(f"Bulk product create failed in store {store.id}: {str(e)}", exc_info=True)
        return Response({'error': 'Internal error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.info(f"User {request.user.email} bulk created {len(products)} products in store {store.id}")
    return Response({'count': len(products), 'products': ProductSerializer(products, many=True).data},
                    status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStoreMember])
def product_bulk_lookup(request, store_id):
    """Products of the store whose barcode is in the given list"""
    barcodes = request.data.get('barcodes')
    if not isinstance(barcodes, list) or not barcodes:
        return Response({'error': 'Barcodes array is required'}, status=status.HTTP_400_BAD_REQUEST)

    products = _product_queryset(store_id).filter(bar_code__in=[str(b) for b in barcodes])
    return Response(ProductSerializer(products, many=True).data)


class ProductScopeError(Exception):
    """A batch names products that are not in the store"""


def _load_store_products(store_id, ids):
    """Lock and map id -> product for the store, every id must belong to it"""
    products = Product.objects.select_for_update().filter(store_id=store_id, id__in=ids)
    by_id = {product.id: product for product in products}
    if len(by_id) != len(set(ids)):
        raise ProductScopeError('Products do not belong to this store')
    return by_id


@api_view(['PATCH'])
@permission_classes([StoreRolePermission])
def product_bulk_price_update(request, store_id):
    """Update the price of many products in one transaction"""
    rows = request.data.get('products')
    if not isinstance(rows, list) or not rows:
        return Response({'error': 'Invalid products data'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = PriceUpdateSerializer(data=rows, many=True)
    if not serializer.is_valid():
        return Response({'error': 'Invalid price', 'errors': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    updates = serializer.validated_data

    try:
        with transaction.atomic(), suspend_cache_signals():
            products = _load_store_products(store_id, [row['id'] for row in updates])
            for row in updates:
                product = products[row['id']]
                old_price = product.price
                product.price = row['price']
                product.save(update_fields=['price', 'updated_at'])
                create_audit_log(request=request, action='price_change', model_name='Product',
                                 object_id=product.id, object_name=product.name, store_id=product.store_id,
                                 changes={'price': {'old': decimal_to_str(old_price),
                                                    'new': decimal_to_str(product.price)}})
    except ProductScopeError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Bulk price update failed in store {store_id}: {str(e)}", exc_info=True)
        return Response({'error': 'Internal error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    invalidate_reports_cache(int(store_id))
    logger.info(f"User {request.user.email} updated prices of {len(updates)} products in store {store_id}")
    return Response({'count': len(updates)})


@api_view(['PATCH'])
@permission_classes([StoreRolePermission])
def product_bulk_fields_update(request, store_id):
    """Write only the provided fields of many products in one transaction"""
    rows = request.data.get('products')
    if not isinstance(rows, list) or not rows:
        return Response({'error': 'Invalid products data'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = ProductFieldsUpdateSerializer(data=rows, many=True)
    if not serializer.is_valid():
        return Response({'error': 'Invalid product data', 'errors': serializer.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    updates = serializer.validated_data

    references = {
        'category_id': Category,
        'size_id': Size,
        'color_id': Color,
        'uom_id': UnitOfMeasure,
    }
    for field, model in references.items():
        ids = {row[field] for row in updates if row.get(field) is not None}
        if ids and model.objects.filter(store_id=store_id, id__in=ids).count() != len(ids):
            return Response({'error': f'Invalid {field}'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        with transaction.atomic(), suspend_cache_signals():
            products = _load_store_products(store_id, [row['id'] for row in updates])
            for row in updates:
                product = products[row['id']]
                fields = [field for field in row if field != 'id']
                changes = {}
                for field in fields:
                    old_value = getattr(product, field)
                    setattr(product, field, row[field])
                    if old_value != row[field]:
                        changes[field] = {'old': str(old_value), 'new': str(row[field])}
                if fields:
                    product.save(update_fields=fields + ['updated_at'])
                if changes:
                    create_audit_log(request=request, action='bulk_update', model_name='Product',
                                     object_id=product.id, object_name=product.name,
                                     store_id=product.store_id, changes=changes)
    except ProductScopeError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Bulk product update failed in store {store_id}: {str(e)}", exc_info=True)
        return Response({'error': 'Internal error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    invalidate_reports_cache(int(store_id))
    logger.info(f"User {request.user.email} bulk updated {len(updates)} products in store {store_id}")
    return Response({'message': 'Products updated successfully', 'count': len(updates)})


@api_view(['PATCH'])
@permission_classes([StoreRolePermission])
def product_deactivate(request, store_id):
    """Archive the given products of the store"""
    product_ids = request.data.get('product_ids')
    if not isinstance(product_ids, list) or not product_ids:
        return Response({'error': 'Product IDs are required'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        product_ids = [int(pk) for pk in product_ids]
    except (TypeError, ValueError):
        return Response({'error': 'Product IDs must be integers'}, status=status.HTTP_400_BAD_REQUEST)

    count = Product.objects.filter(store_id=store_id, id__in=product_ids).update(
        is_archived=True, updated_at=timezone.now()
    )
    invalidate_reports_cache(int(store_id))
    create_audit_log(request=request, action='deactivate', model_name='Product',
                     object_id=','.join(str(pk) for pk in product_ids[:50]),
                     object_name=f'{count} products', store_id=int(store_id), changes={'count': count})
    logger.info(f"User {request.user.email} deactivated {count} products in store {store_id}")
    return Response({'count': count})


@api_view(['POST'])
@permission_classes([StoreRolePermission])
@parser_classes([MultiPartParser, FormParser])
def product_import(request, store_id):
    """
    Stage or commit products from an .xlsx upload.

    Without ``commit`` the parsed rows and per-row errors are returned so the
    client can review and edit them; with ``commit=true`` every row is created
    in one transaction, or nothing when any row is invalid.
    """
    store = get_object_or_404(Store, pk=store_id)
    upload = request.FILES.get('file')
    if not upload:
        return Response({'error': 'File is required'}, status=status.HTTP_400_BAD_REQUEST)
    if not upload.name.lower().endswith('.xlsx'):
        return Response({'error': 'Only .xlsx files are supported'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        rows = read_product_rows(upload)
    except SpreadsheetError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    if not rows:
        return Response({'error': 'No products found in file'}, status=status.HTTP_400_BAD_REQUEST)

    row_serializers, errors = _validation_errors_by_row(rows, store)
    commit = str(request.data.get('commit', 'false')).lower() in ('true', '1', 'yes')

    if not commit:
        return Response({
            'rows': [{k: decimal_to_str(v) if k == 'price' and v is not None else v for k, v in row.items()}
                     for row in rows],
            'errors': errors,
            'valid_count': len(row_serializers),
            'invalid_count': len(errors),
        })

    if errors:
        return Response({'error': 'Spreadsheet has invalid rows', 'errors': errors},
                        status=status.HTTP_400_BAD_REQUEST)

    try:
        products = _create_rows(request, store, row_serializers, 'import')
    except Exception as e:
        logger.error(f"Product import failed in store {store.id}: {str(e)}", exc_info=True)
        return Response({'error': 'Internal error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.info(f"User {request.user.email} imported {len(products)} products into store {store.id}")
    return Response({'count': len(products)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([StoreRolePermission])
def product_export(request, store_id):
    """Download the store's products as .xlsx"""
    store = get_object_or_404(Store, pk=store_id)
    queryset = Product.objects.filter(store=store).order_by('-created_at')
    filterset = ProductFilter(request.query_params, queryset=queryset)
    output = build_products_workbook(filterset.qs)

    response = HttpResponse(output.getvalue(), content_type=XLSX_CONTENT_TYPE)
    filename = f"products-{store.id}-{timezone.now():%Y%m%d}.xlsx"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    logger.info(f"User {request.user.email} exported products of store {store.id}")
    return response
