from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Q
from django.utils import timezone
from rest_framework import serializers

from .models import Role, AuditLog
from .permissions import get_user_permissions

User = get_user_model()


def check_password_rules(password, user=None, field=None):
    """Run AUTH_PASSWORD_VALIDATORS, reporting failures as serializer errors under ``field``"""
    try:
        validate_password(password, user)
    except DjangoValidationError as e:
        messages = list(e.messages)
        raise serializers.ValidationError({field: messages} if field else messages)


class RoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ['id', 'name', 'description']


class UserSerializer(serializers.ModelSerializer):
    role = serializers.CharField(source='role_name', read_only=True)
    store_id = serializers.IntegerField(read_only=True)
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'role', 'store_id', 'permissions', 'email_verified',
                  'is_active', 'is_superuser', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_permissions(self, obj):
        return get_user_permissions(obj)


class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(Q(email__iexact=value) | Q(username__iexact=value)).exists():
            raise serializers.ValidationError('Email already in use!')
        return value

    def validate(self, attrs):
        check_password_rules(attrs['password'], User(email=attrs['email'], name=attrs['name']), field='password')
        return attrs

    def create(self, validated_data):
        user = User(
            username=validated_data['email'],
            email=validated_data['email'],
            name=validated_data['name'],
            is_active=True,
        )
        user.set_password(validated_data['password'])
        user.save()
        return user


class StoreUserCreateSerializer(RegisterSerializer):
    """User created by an administrator inside their store"""
    role_id = serializers.PrimaryKeyRelatedField(queryset=Role.objects.all(), source='role')

    def create(self, validated_data):
        role = validated_data.pop('role')
        store = self.context['store']
        user = super().create(validated_data)
        user.role = role
        user.store = store
        user.email_verified = timezone.now()
        user.save(update_fields=['role', 'store', 'email_verified'])
        return user


class SettingsSerializer(serializers.Serializer):
    """Current user's own settings"""
    name = serializers.CharField(max_length=200, required=False)
    email = serializers.EmailField(required=False)
    password = serializers.CharField(write_only=True, required=False)
    new_password = serializers.CharField(write_only=True, required=False, min_length=6)

    def validate(self, attrs):
        if attrs.get('new_password') and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'Current password is required.'})
        if attrs.get('new_password'):
            check_password_rules(attrs['new_password'], self.context.get('user'), field='new_password')
        return attrs


class TokenSerializer(serializers.Serializer):
    token = serializers.CharField()


class ResetSerializer(serializers.Serializer):
    email = serializers.EmailField()


class NewPasswordSerializer(serializers.Serializer):
    token = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, min_length=6)

    def validate_password(self, value):
        check_password_rules(value)
        return value


class UploadSerializer(serializers.Serializer):
    KIND_CHOICES = ['approved_po', 'delivery_receipt', 'product_image', 'billboard_image', 'purchase_order']

    file = serializers.FileField()
    kind = serializers.ChoiceField(choices=KIND_CHOICES)

    def validate_file(self, value):
        if value.size > settings.UPLOAD_MAX_SIZE:
            raise serializers.ValidationError('File is too large.')
        return value


class AuditLogSerializer(serializers.ModelSerializer):
    user_email = serializers.CharField(source='user.email', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'user_email', 'action', 'model_name', 'object_id', 'object_name',
                  'store_id', 'changes', 'ip_address', 'created_at']
