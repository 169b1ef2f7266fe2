import logging
import os
import uuid

from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.core.files.storage import default_storage
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from backend.stores.models import Store
from .models import Role, AuditLog, VerificationToken, PasswordResetToken
from .permissions import IsAdministrator, IsStoreMember
from .serializers import (
    UserSerializer, RoleSerializer, RegisterSerializer, StoreUserCreateSerializer,
    SettingsSerializer, TokenSerializer, ResetSerializer, NewPasswordSerializer,
    UploadSerializer, AuditLogSerializer
)
from .tokens import (
    generate_verification_token, generate_password_reset_token, is_expired,
    send_verification_email, send_password_reset_email
)
from .utils import create_audit_log

User = get_user_model()
logger = logging.getLogger('backend.core')


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        attrs[self.username_field] = attrs[self.username_field].strip().lower()
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        if not self.user.email_verified:
            raise AuthenticationFailed('Email not verified.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['name'] = user.name
        token['role'] = user.role_name
        token['store_id'] = user.store_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as invalid tokens"""
    def validate(self, attrs):
        try:
            refresh = self.token_class(attrs['refresh'])
        except TokenError:
            raise InvalidToken('Token is invalid or expired.')
        user_id = refresh.payload.get(jwt_settings.USER_ID_CLAIM)
        if not User.objects.filter(**{jwt_settings.USER_ID_FIELD: user_id}).exists():
            raise InvalidToken('Token is invalid. User no longer exists.')
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint, sends the confirmation mail"""
    serializer = RegisterSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    user = serializer.save()
    verification = generate_verification_token(user.email)
    send_verification_email(user.email, verification.token)
    logger.info(f"Registered user {user.email}")
    return Response({'success': 'Confirmation email sent!'}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
def verify_email(request):
    serializer = TokenSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    existing = VerificationToken.objects.filter(token=serializer.validated_data['token']).first()
    if not existing:
        return Response({'error': 'Token does not exist!'}, status=status.HTTP_400_BAD_REQUEST)
    if is_expired(existing):
        return Response({'error': 'Token has expired!'}, status=status.HTTP_400_BAD_REQUEST)

    user = User.objects.filter(email__iexact=existing.email).first()
    if not user:
        return Response({'error': 'Email does not exist!'}, status=status.HTTP_400_BAD_REQUEST)

    user.email_verified = timezone.now()
    user.save(update_fields=['email_verified'])
    existing.delete()
    return Response({'success': 'Email verified!'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with role, store and permissions"""
    data = UserSerializer(request.user).data
    store = request.user.store
    data['store'] = {'id': store.id, 'name': store.name} if store else None
    return Response(data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def user_settings(request):
    """Update the current user's name, e-mail or password"""
    user = request.user
    serializer = SettingsSerializer(data=request.data, context={'user': user})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    values = serializer.validated_data

    email = values.get('email')
    email = email.lower() if email else None
    email_changed = bool(email) and email != user.email
    if email_changed and User.objects.filter(
            Q(email__iexact=email) | Q(username__iexact=email)
    ).exclude(pk=user.pk).exists():
        return Response({'error': 'Email already in use!'}, status=status.HTTP_400_BAD_REQUEST)

    update_fields = []
    if values.get('password') and values.get('new_password'):
        if not user.check_password(values['password']):
            return Response({'error': 'Incorrect password!'}, status=status.HTTP_400_BAD_REQUEST)
        user.set_password(values['new_password'])
        update_fields.append('password')

    if 'name' in values:
        user.name = values['name']
        update_fields.append('name')

    if email_changed:
        # username mirrors the login e-mail so the old address can be registered again
        user.email = email
        user.username = email
        user.email_verified = None
        update_fields += ['email', 'username', 'email_verified']

    if update_fields:
        user.save(update_fields=update_fields)
        if 'password' in update_fields:
            create_audit_log(request=request, action='password_change', model_name='User',
                             object_id=user.id, object_name=user.email)

    if email_changed:
        verification = generate_verification_token(email)
        send_verification_email(email, verification.token)
        return Response({'success': 'Verification email sent!', 'user': UserSerializer(user).data})
    return Response({'success': 'Settings Updated!', 'user': UserSerializer(user).data})


@api_view(['POST'])
@permission_classes([AllowAny])
def reset_password(request):
    serializer = ResetSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Invalid email!'}, status=status.HTTP_400_BAD_REQUEST)

    email = serializer.validated_data['email'].lower()
    if not User.objects.filter(email__iexact=email).exists():
        return Response({'error': 'Email not found!'}, status=status.HTTP_400_BAD_REQUEST)

    reset_token = generate_password_reset_token(email)
    send_password_reset_email(email, reset_token.token)
    return Response({'success': 'Reset email sent!'})


@api_view(['POST'])
@permission_classes([AllowAny])
def new_password(request):
    serializer = NewPasswordSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Invalid fields!'}, status=status.HTTP_400_BAD_REQUEST)

    token = serializer.validated_data.get('token')
    if not token:
        return Response({'error': 'Missing token!'}, status=status.HTTP_400_BAD_REQUEST)

    existing = PasswordResetToken.objects.filter(token=token).first()
    if not existing:
        return Response({'error': 'Invalid token!'}, status=status.HTTP_400_BAD_REQUEST)
    if is_expired(existing):
        return Response({'error': 'Token has expired!'}, status=status.HTTP_400_BAD_REQUEST)

    user = User.objects.filter(email__iexact=existing.email).first()
    if not user:
        return Response({'error': 'Email does not exist!'}, status=status.HTTP_400_BAD_REQUEST)

    user.set_password(serializer.validated_data['password'])
    user.save(update_fields=['password'])
    existing.delete()
    return Response({'success': 'Password updated!'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def role_list(request):
    serializer = RoleSerializer(Role.objects.all(), many=True)
    return Response(serializer.data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStoreMember, IsAdministrator])
def store_user_list_create(request, store_id):
    """List the store's users or create a new user in the store"""
    store = get_object_or_404(Store, pk=store_id)

    if request.method == 'GET':
        users = User.objects.filter(store=store).select_related('role').order_by('email')
        return Response(UserSerializer(users, many=True).data)

    serializer = StoreUserCreateSerializer(data=request.data, context={'store': store})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    user = serializer.save()
    logger.info(f"User {request.user.email} created user {user.email} in store {store.id}")
    create_audit_log(request=request, action='user_create', model_name='User', object_id=user.id,
                     object_name=user.email, store_id=store.id, changes={'role': user.role_name})
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdministrator])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    if not request.user.is_superuser:
        queryset = queryset.filter(store_id=request.user.store_id)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    serializer = AuditLogSerializer(queryset.order_by('-created_at')[:500], many=True)
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def upload_file(request):
    """Store an attachment and return its public URL"""
    serializer = UploadSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    upload = serializer.validated_data['file']
    kind = serializer.validated_data['kind']
    filename = os.path.basename(upload.name)
    path = default_storage.save(f"uploads/{kind}/{uuid.uuid4().hex[:12]}-{filename}", upload)
    url = request.build_absolute_uri(default_storage.url(path))
    logger.info(f"User {request.user.email} uploaded {kind} file {path}")
    return Response({'url': url, 'name': filename}, status=status.HTTP_201_CREATED)
