"""
Test suite for the core module
Tests: registration, e-mail verification, login, settings, password reset,
roles and permissions, store users, audit log and uploads
"""
import shutil
import tempfile
from datetime import timedelta
from io import StringIO

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework_simplejwt.tokens import AccessToken

from backend.core.models import Role, AuditLog, VerificationToken, PasswordResetToken
from backend.core.permissions import get_user_permissions, is_store_member
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import create_audit_log

User = get_user_model()


class RoleAndPermissionTests(TestCase):
    """Test role to permission mapping"""

    def setUp(self):
        self.store = TestDataFactory.create_store()

    def test_roles_are_seeded(self):
        names = set(Role.objects.values_list('name', flat=True))
        self.assertEqual(names, {Role.ADMINISTRATOR, Role.ACCTG, Role.USER})

    def test_administrator_permissions(self):
        user = TestDataFactory.create_user(store=self.store, role=Role.ADMINISTRATOR)
        self.assertEqual(get_user_permissions(user), ['create', 'read', 'update', 'delete'])

    def test_acctg_permissions(self):
        user = TestDataFactory.create_user(store=self.store, role=Role.ACCTG)
        self.assertEqual(get_user_permissions(user), ['create', 'read', 'update'])

    def test_user_without_role_only_reads(self):
        user = TestDataFactory.create_user(store=self.store, role=None)
        self.assertEqual(get_user_permissions(user), ['read'])

    def test_superuser_has_everything(self):
        user = TestDataFactory.create_user(role=None, is_superuser=True)
        self.assertIn('delete', get_user_permissions(user))
        self.assertTrue(is_store_member(user, self.store.id))

    def test_store_membership(self):
        user = TestDataFactory.create_user(store=self.store)
        other = TestDataFactory.create_store()
        self.assertTrue(is_store_member(user, self.store.id))
        self.assertTrue(is_store_member(user, str(self.store.id)))
        self.assertFalse(is_store_member(user, other.id))
        self.assertFalse(is_store_member(user, 'abc'))

    def test_create_roles_command_is_idempotent(self):
        out = StringIO()
        call_command('create_roles', stdout=out)
        self.assertIn('0 roles created, 3 roles already existed', out.getvalue())
        self.assertEqual(Role.objects.count(), 3)


class RegisterAndVerifyTests(TestCase):
    """Test registration and e-mail verification"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_sends_confirmation(self):
        response = self.client.post('/api/v1/auth/register/', {
            'name': 'Jane Doe',
            'email': 'Jane@Example.com',
            'password': 'secret123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['success'], 'Confirmation email sent!')

        user = User.objects.get(email='jane@example.com')
        self.assertIsNone(user.email_verified)
        self.assertTrue(VerificationToken.objects.filter(email='jane@example.com').exists())
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['jane@example.com'])

    def test_register_duplicate_email(self):
        TestDataFactory.create_user(email='taken@example.com')
        response = self.client.post('/api/v1/auth/register/', {
            'name': 'Someone',
            'email': 'taken@example.com',
            'password': 'secret123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_register_short_password(self):
        response = self.client.post('/api/v1/auth/register/', {
            'name': 'Someone',
            'email': 'short@example.com',
            'password': '123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_register_password_too_similar_to_email(self):
        response = self.client.post('/api/v1/auth/register/', {
            'name': 'Jane Doe',
            'email': 'janedoe@example.com',
            'password': 'janedoe@example.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)
        self.assertFalse(User.objects.filter(email='janedoe@example.com').exists())

    def test_verify_email(self):
        user = TestDataFactory.create_user(email='verify@example.com', verified=False)
        token = VerificationToken.objects.create(
            email=user.email, token='verify-token', expires=timezone.now() + timedelta(hours=1)
        )
        response = self.client.post('/api/v1/auth/verify-email/', {'token': token.token}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertIsNotNone(user.email_verified)
        self.assertFalse(VerificationToken.objects.filter(token='verify-token').exists())

    def test_verify_unknown_token(self):
        response = self.client.post('/api/v1/auth/verify-email/', {'token': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Token does not exist!')

    def test_verify_expired_token(self):
        VerificationToken.objects.create(
            email='old@example.com', token='old-token', expires=timezone.now() - timedelta(minutes=1)
        )
        response = self.client.post('/api/v1/auth/verify-email/', {'token': 'old-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Token has expired!')


class LoginTests(TestCase):
    """Test JWT login and refresh"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.store = TestDataFactory.create_store()
        self.user = TestDataFactory.create_user(
            email='login@example.com', password='secret123', store=self.store, role=Role.ACCTG
        )

    def test_login_returns_tokens_with_claims(self):
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'LOGIN@example.com', 'password': 'secret123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], Role.ACCTG)

        token = AccessToken(response.data['access'])
        self.assertEqual(token['email'], 'login@example.com')
        self.assertEqual(token['role'], Role.ACCTG)
        self.assertEqual(token['store_id'], self.store.id)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'login@example.com', 'password': 'wrong-password'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_unverified_email(self):
        TestDataFactory.create_user(email='unverified@example.com', password='secret123', verified=False)
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'unverified@example.com', 'password': 'secret123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        login = self.client.post('/api/v1/auth/login/', {
            'email': 'login@example.com', 'password': 'secret123'
        }, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_after_user_deleted(self):
        login = self.client.post('/api/v1/auth/login/', {
            'email': 'login@example.com', 'password': 'secret123'
        }, format='json')
        self.user.delete()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(str(response.data['detail']), 'Token is invalid. User no longer exists.')

    def test_refresh_with_garbage_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['store'], {'id': self.store.id, 'name': self.store.name})
        self.assertEqual(response.data['permissions'], ['create', 'read', 'update'])


class SettingsTests(TestCase):
    """Test the current user's settings endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(email='me@example.com', password='secret123')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_update_name(self):
        response = self.client.patch('/api/v1/auth/settings/', {'name': 'New Name'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['success'], 'Settings Updated!')
        self.user.refresh_from_db()
        self.assertEqual(self.user.name, 'New Name')

    def test_change_password(self):
        response = self.client.patch('/api/v1/auth/settings/', {
            'password': 'secret123', 'new_password': 'newsecret456'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('newsecret456'))
        self.assertTrue(AuditLog.objects.filter(action='password_change', object_id=str(self.user.id)).exists())

    def test_change_password_wrong_current(self):
        response = self.client.patch('/api/v1/auth/settings/', {
            'password': 'wrong', 'new_password': 'newsecret456'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Incorrect password!')

    def test_change_email_requires_verification(self):
        response = self.client.patch('/api/v1/auth/settings/', {'email': 'new@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['success'], 'Verification email sent!')
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, 'new@example.com')
        self.assertIsNone(self.user.email_verified)
        self.assertEqual(len(mail.outbox), 1)

    def test_old_email_can_register_after_change(self):
        response = self.client.patch('/api/v1/auth/settings/', {'email': 'new@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.username, 'new@example.com')

        self.client.logout()
        response = self.client.post('/api/v1/auth/register/', {
            'name': 'Second Owner',
            'email': 'me@example.com',
            'password': 'secret123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(User.objects.filter(email='me@example.com').exclude(pk=self.user.pk).exists())

    def test_change_email_with_name_and_password(self):
        response = self.client.patch('/api/v1/auth/settings/', {
            'name': 'Renamed',
            'email': 'moved@example.com',
            'password': 'secret123',
            'new_password': 'newsecret456',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['success'], 'Verification email sent!')
        self.user.refresh_from_db()
        self.assertEqual(self.user.name, 'Renamed')
        self.assertEqual(self.user.email, 'moved@example.com')
        self.assertTrue(self.user.check_password('newsecret456'))

    def test_change_email_with_wrong_password_changes_nothing(self):
        response = self.client.patch('/api/v1/auth/settings/', {
            'name': 'Renamed',
            'email': 'moved@example.com',
            'password': 'wrong',
            'new_password': 'newsecret456',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, 'me@example.com')
        self.assertNotEqual(self.user.name, 'Renamed')
        self.assertEqual(len(mail.outbox), 0)

    def test_new_password_similar_to_email(self):
        response = self.client.patch('/api/v1/auth/settings/', {
            'password': 'secret123', 'new_password': 'me@example.com'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('new_password', response.data)

    def test_change_email_taken(self):
        TestDataFactory.create_user(email='taken@example.com')
        response = self.client.patch('/api/v1/auth/settings/', {'email': 'taken@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Email already in use!')


class PasswordResetTests(TestCase):
    """Test password reset and new password"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(email='reset@example.com', password='oldpass123')

    def test_reset_unknown_email(self):
        response = self.client.post('/api/v1/auth/reset/', {'email': 'ghost@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Email not found!')

    def test_reset_replaces_previous_token(self):
        self.client.post('/api/v1/auth/reset/', {'email': 'reset@example.com'}, format='json')
        response = self.client.post('/api/v1/auth/reset/', {'email': 'reset@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['success'], 'Reset email sent!')
        self.assertEqual(PasswordResetToken.objects.filter(email='reset@example.com').count(), 1)
        self.assertEqual(len(mail.outbox), 2)

    def test_new_password(self):
        PasswordResetToken.objects.create(
            email='reset@example.com', token='reset-token', expires=timezone.now() + timedelta(hours=1)
        )
        response = self.client.post('/api/v1/auth/new-password/', {
            'token': 'reset-token', 'password': 'brandnew123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('brandnew123'))
        self.assertFalse(PasswordResetToken.objects.filter(token='reset-token').exists())

    def test_new_password_missing_token(self):
        response = self.client.post('/api/v1/auth/new-password/', {'password': 'brandnew123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Missing token!')

    def test_new_password_invalid_token(self):
        response = self.client.post('/api/v1/auth/new-password/', {
            'token': 'unknown', 'password': 'brandnew123'
        }, format='json')
        self.assertEqual(response.data['error'], 'Invalid token!')

    def test_new_password_expired_token(self):
        PasswordResetToken.objects.create(
            email='reset@example.com', token='expired', expires=timezone.now() - timedelta(seconds=1)
        )
        response = self.client.post('/api/v1/auth/new-password/', {
            'token': 'expired', 'password': 'brandnew123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Token has expired!')


class StoreUserTests(TestCase):
    """Test store user management"""

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.admin = TestDataFactory.create_user(store=self.store, role=Role.ADMINISTRATOR)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.url = f'/api/v1/stores/{self.store.id}/users/'

    def test_list_store_users(self):
        TestDataFactory.create_user(store=self.store, role=Role.USER)
        TestDataFactory.create_user(store=TestDataFactory.create_store())
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_create_store_user(self):
        role = Role.objects.get(name=Role.ACCTG)
        response = self.client.post(self.url, {
            'name': 'Accountant',
            'email': 'acctg@example.com',
            'password': 'secret123',
            'role_id': role.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='acctg@example.com')
        self.assertEqual(user.store_id, self.store.id)
        self.assertEqual(user.role_name, Role.ACCTG)
        self.assertIsNotNone(user.email_verified)
        self.assertTrue(AuditLog.objects.filter(action='user_create', store_id=self.store.id).exists())

    def test_acctg_cannot_manage_users(self):
        acctg = TestDataFactory.create_user(store=self.store, role=Role.ACCTG)
        self.client.authenticate_user(acctg)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_of_other_store_is_rejected(self):
        other_admin = TestDataFactory.create_user(store=TestDataFactory.create_store())
        self.client.authenticate_user(other_admin)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_role_list(self):
        response = self.client.get('/api/v1/roles/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 3)


class AuditLogTests(TestCase):
    """Test audit log creation and listing"""

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.admin = TestDataFactory.create_user(store=self.store, role=Role.ADMINISTRATOR)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_audit_log_skips_missing_fields(self):
        self.assertIsNone(create_audit_log(action='create', model_name='Product'))

    def test_list_is_scoped_to_store(self):
        create_audit_log(user=self.admin, action='create', model_name='Product', object_id=1, store_id=self.store.id)
        create_audit_log(user=self.admin, action='create', model_name='Product', object_id=2, store_id=9999)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([entry['object_id'] for entry in response.data], ['1'])

    def test_filter_by_action(self):
        create_audit_log(user=self.admin, action='create', model_name='Product', object_id=1, store_id=self.store.id)
        create_audit_log(user=self.admin, action='delete', model_name='Product', object_id=1, store_id=self.store.id)
        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'delete')

    def test_filter_by_date_range(self):
        old = create_audit_log(user=self.admin, action='create', model_name='Product', object_id=1,
                               store_id=self.store.id)
        create_audit_log(user=self.admin, action='update', model_name='Product', object_id=1,
                         store_id=self.store.id)
        AuditLog.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=10))
        cutoff = (timezone.localdate() - timedelta(days=5)).isoformat()

        response = self.client.get('/api/v1/audit-logs/', {'date_from': cutoff})
        self.assertEqual([entry['action'] for entry in response.data], ['update'])

        response = self.client.get('/api/v1/audit-logs/', {'date_to': cutoff})
        self.assertEqual([entry['action'] for entry in response.data], ['create'])

    def test_plain_user_cannot_read(self):
        reader = TestDataFactory.create_user(store=self.store, role=Role.USER)
        self.client.authenticate_user(reader)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class UploadTests(TestCase):
    """Test attachment uploads"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def tearDown(self):
        shutil.rmtree(self.media_root, ignore_errors=True)

    def test_upload_file(self):
        with override_settings(MEDIA_ROOT=self.media_root):
            upload = SimpleUploadedFile('po.pdf', b'%PDF-1.4 test', content_type='application/pdf')
            response = self.client.post('/api/v1/uploads/', {'file': upload, 'kind': 'approved_po'},
                                        format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'po.pdf')
        self.assertIn('/media/uploads/approved_po/', response.data['url'])

    def test_upload_unknown_kind(self):
        with override_settings(MEDIA_ROOT=self.media_root):
            upload = SimpleUploadedFile('x.txt', b'data')
            response = self.client.post('/api/v1/uploads/', {'file': upload, 'kind': 'other'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(UPLOAD_MAX_SIZE=10)
    def test_upload_too_large(self):
        with override_settings(MEDIA_ROOT=self.media_root):
            upload = SimpleUploadedFile('big.pdf', b'x' * 100)
            response = self.client.post('/api/v1/uploads/', {'file': upload, 'kind': 'delivery_receipt'},
                                        format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
