import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db import transaction
from django.db.models import ProtectedError

from backend.core.models import Role
from backend.core.permissions import StoreRolePermission
from backend.core.utils import create_audit_log
from .models import Store
from .serializers import StoreSerializer

logger = logging.getLogger('backend.stores')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def store_list_create(request):
    """List the caller's stores or create a new store"""
    if request.method == 'GET':
        if request.user.is_superuser:
            stores = Store.objects.all()
        else:
            stores = Store.objects.filter(pk=request.user.store_id)
        logger.debug(f"User {request.user.email} requested store list")
        return Response(StoreSerializer(stores, many=True).data)

    serializer = StoreSerializer(data=request.data)
    if not serializer.is_valid():
        logger.warning(f"Store creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        store = serializer.save()
        user = request.user
        if user.store_id is None:
            # The creator owns the new store
            user.store = store
            update_fields = ['store']
            if user.role_id is None:
                user.role = Role.objects.get_or_create(name=Role.ADMINISTRATOR)[0]
                update_fields.append('role')
            user.save(update_fields=update_fields)

    logger.info(f"Store '{store.name}' created by {request.user.email}")
    create_audit_log(request=request, action='create', model_name='Store', object_id=store.id,
                     object_name=store.name, store_id=store.id)
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([StoreRolePermission])
def store_detail(request, store_id):
    """Retrieve, rename or delete a store"""
    store = get_object_or_404(Store, pk=store_id)

    if request.method == 'GET':
        return Response(StoreSerializer(store).data)

    if request.method == 'PATCH':
        serializer = StoreSerializer(store, data=request.data, partial=True)
        if not serializer.is_valid():
            logger.warning(f"Store patch validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        old_name = store.name
        serializer.save()
        logger.info(f"Store {store_id} updated by {request.user.email}")
        create_audit_log(request=request, action='update', model_name='Store', object_id=store.id,
                         object_name=store.name, store_id=store.id,
                         changes={'name': {'old': old_name, 'new': store.name}})
        return Response(serializer.data)

    # DELETE
    name = store.name
    try:
        store.delete()
    except ProtectedError:
        logger.warning(f"Store {store_id} could not be deleted, records still reference it")
        return Response({'error': 'Make sure you removed all products and categories first.'},
                        status=status.HTTP_400_BAD_REQUEST)
    logger.info(f"Store {store_id} ({name}) deleted by {request.user.email}")
    create_audit_log(request=request, action='delete', model_name='Store', object_id=store_id,
                     object_name=name, store_id=store_id)
    return Response(status=status.HTTP_204_NO_CONTENT)
