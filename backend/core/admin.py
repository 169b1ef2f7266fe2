from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, Role, VerificationToken, PasswordResetToken, AuditLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'name', 'role', 'store', 'email_verified', 'is_active', 'is_superuser']
    list_filter = ['is_active', 'is_superuser', 'role', 'store']
    search_fields = ['email', 'name', 'username']
    ordering = ['email']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Store Access', {'fields': ('name', 'role', 'store', 'email_verified')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'username', 'name', 'role', 'store', 'password1', 'password2'),
        }),
    )


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'description', 'created_at']
    search_fields = ['name']
    ordering = ['name']


@admin.register(VerificationToken)
class VerificationTokenAdmin(admin.ModelAdmin):
    list_display = ['email', 'expires']
    search_fields = ['email']


@admin.register(PasswordResetToken)
class PasswordResetTokenAdmin(admin.ModelAdmin):
    list_display = ['email', 'expires']
    search_fields = ['email']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['user', 'action', 'model_name', 'object_id', 'store_id', 'ip_address', 'created_at']
    list_filter = ['action', 'model_name', 'created_at']
    search_fields = ['user__email', 'model_name', 'object_id', 'object_name']
    ordering = ['-created_at']
    readonly_fields = ['user', 'action', 'model_name', 'object_id', 'object_name', 'store_id', 'changes', 'ip_address', 'created_at']
