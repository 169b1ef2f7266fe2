"""
Verification and password reset tokens, and the mails that deliver them
"""
import logging
import uuid
from datetime import timedelta

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from .models import VerificationToken, PasswordResetToken

logger = logging.getLogger(__name__)


def _expiry(ttl_seconds):
    return timezone.now() + timedelta(seconds=ttl_seconds)


def generate_verification_token(email):
    """Create a fresh verification token, dropping any previous one for the e-mail"""
    VerificationToken.objects.filter(email=email).delete()
    return VerificationToken.objects.create(
        email=email,
        token=str(uuid.uuid4()),
        expires=_expiry(settings.VERIFICATION_TOKEN_TTL),
    )


def generate_password_reset_token(email):
    """Create a fresh password reset token, dropping any previous one for the e-mail"""
    PasswordResetToken.objects.filter(email=email).delete()
    return PasswordResetToken.objects.create(
        email=email,
        token=str(uuid.uuid4()),
        expires=_expiry(settings.PASSWORD_RESET_TOKEN_TTL),
    )


def is_expired(token_obj):
    return token_obj.expires < timezone.now()


def send_verification_email(email, token):
    link = f"{settings.FRONTEND_URL}/auth/new-verification?token={token}"
    send_mail(
        subject='Confirm your email',
        message=f'Click the link to confirm your email: {link}',
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[email],
        fail_silently=False,
    )
    logger.info(f"Verification email sent to {email}")


def send_password_reset_email(email, token):
    link = f"{settings.FRONTEND_URL}/auth/new-password?token={token}"
    send_mail(
        subject='Reset your password',
        message=f'Click the link to reset your password: {link}',
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[email],
        fail_silently=False,
    )
    logger.info(f"Password reset email sent to {email}")
