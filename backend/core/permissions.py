"""
Role and store based access control for API views.

Roles map to CRUD permissions; the HTTP method of a request decides which
permission it needs. Store scoped views also require the caller to belong to
the store named in the URL.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

from .models import Role

ROLE_PERMISSIONS = {
    Role.ADMINISTRATOR: ['create', 'read', 'update', 'delete'],
    Role.ACCTG: ['create', 'read', 'update'],
    Role.USER: ['read'],
}

METHOD_PERMISSIONS = {
    'GET': 'read',
    'HEAD': 'read',
    'OPTIONS': 'read',
    'POST': 'create',
    'PUT': 'update',
    'PATCH': 'update',
    'DELETE': 'delete',
}


def get_user_permissions(user):
    """List of CRUD permissions for a user"""
    if not user or not user.is_authenticated:
        return []
    if user.is_superuser:
        return list(ROLE_PERMISSIONS[Role.ADMINISTRATOR])
    role_name = user.role.name if user.role_id else Role.USER
    return list(ROLE_PERMISSIONS.get(role_name, ['read']))


def user_has_permissions(user, required):
    permissions = get_user_permissions(user)
    return all(p in permissions for p in required)


def is_store_member(user, store_id):
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    try:
        return user.store_id is not None and user.store_id == int(store_id)
    except (TypeError, ValueError):
        return False


class HasRolePermission(BasePermission):
    """Checks the caller's role grants the permission implied by the method"""
    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        required = METHOD_PERMISSIONS.get(request.method, 'read')
        return user_has_permissions(request.user, [required])


class IsStoreMember(BasePermission):
    message = 'You do not have access to this store.'

    def has_permission(self, request, view):
        store_id = view.kwargs.get('store_id')
        if store_id is None:
            return bool(request.user and request.user.is_authenticated)
        return is_store_member(request.user, store_id)


class StoreRolePermission(BasePermission):
    """Authenticated store member whose role allows the request method"""
    message = 'You do not have permission to perform this action in this store.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return IsStoreMember().has_permission(request, view) and HasRolePermission().has_permission(request, view)


class IsAdministrator(BasePermission):
    message = 'Administrator role required.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return user.is_superuser or user.role_name == Role.ADMINISTRATOR


class IsReadOnlyRequest(BasePermission):
    """Storefront access: anyone may read"""

    def has_permission(self, request, view):
        return request.method in SAFE_METHODS


class IsCheckoutRequest(BasePermission):
    """Storefront access: anyone may place an order"""

    def has_permission(self, request, view):
        return request.method == 'POST'
