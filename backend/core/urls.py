from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, register, verify_email,
    user_me, user_settings, reset_password, new_password,
    role_list, store_user_list_create,
    audit_log_list, upload_file
)

urlpatterns = [
    # Auth endpoints
    path('auth/register/', register, name='register'),
    path('auth/verify-email/', verify_email, name='verify-email'),
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/settings/', user_settings, name='user-settings'),
    path('auth/reset/', reset_password, name='reset-password'),
    path('auth/new-password/', new_password, name='new-password'),

    # Roles and store users
    path('roles/', role_list, name='role-list'),
    path('stores/<int:store_id>/users/', store_user_list_create, name='store-user-list-create'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),

    # Attachments
    path('uploads/', upload_file, name='upload-file'),
]
