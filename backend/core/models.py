from django.contrib.auth.models import AbstractUser
from django.db import models


class Role(models.Model):
    """Application roles used for access control"""
    ADMINISTRATOR = 'Administrator'
    ACCTG = 'Acctg'
    USER = 'User'

    ROLE_CHOICES = [
        (ADMINISTRATOR, 'Administrator'),
        (ACCTG, 'Accounting'),
        (USER, 'User'),
    ]

    name = models.CharField(max_length=50, unique=True, choices=ROLE_CHOICES)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'roles'
        ordering = ['name']


class User(AbstractUser):
    """Extended user model, signs in with e-mail"""
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=200, blank=True)
    email_verified = models.DateTimeField(null=True, blank=True)
    role = models.ForeignKey(Role, on_delete=models.SET_NULL, null=True, blank=True, related_name='users')
    store = models.ForeignKey('stores.Store', on_delete=models.SET_NULL, null=True, blank=True, related_name='users')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    def __str__(self):
        return self.email

    @property
    def role_name(self):
        return self.role.name if self.role_id else None

    class Meta:
        db_table = 'users'


class VerificationToken(models.Model):
    """E-mail verification tokens"""
    email = models.EmailField(db_index=True)
    token = models.CharField(max_length=100, unique=True)
    expires = models.DateTimeField()

    def __str__(self):
        return f"{self.email} ({self.expires:%Y-%m-%d %H:%M})"

    class Meta:
        db_table = 'verification_tokens'
        unique_together = [['email', 'token']]


class PasswordResetToken(models.Model):
    """Password reset tokens"""
    email = models.EmailField(db_index=True)
    token = models.CharField(max_length=100, unique=True)
    expires = models.DateTimeField()

    def __str__(self):
        return f"{self.email} ({self.expires:%Y-%m-%d %H:%M})"

    class Meta:
        db_table = 'password_reset_tokens'
        unique_together = [['email', 'token']]


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('bulk_create', 'Bulk Create'),
        ('bulk_update', 'Bulk Update'),
        ('price_change', 'Price Change'),
        ('deactivate', 'Deactivate'),
        ('import', 'Spreadsheet Import'),
        ('order_paid', 'Order Marked Paid'),
        ('order_delivered', 'Order Marked Delivered'),
        ('user_create', 'User Created'),
        ('password_change', 'Password Changed'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product name, PO number)")
    store_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_idx'),
            models.Index(fields=['action'], name='audit_logs_action_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_idx'),
        ]
