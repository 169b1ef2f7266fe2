"""
Test suite for the stores module
"""
from django.test import TestCase
from rest_framework import status

from backend.core.models import Role, AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.stores.models import Store


class StoreListCreateTests(TestCase):
    """Test listing and creating stores"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_requires_authentication(self):
        response = self.client.get('/api/v1/stores/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_member_sees_only_own_store(self):
        store = TestDataFactory.create_store('Main Store')
        TestDataFactory.create_store('Other Store')
        user = TestDataFactory.create_user(store=store)
        self.client.authenticate_user(user)

        response = self.client.get('/api/v1/stores/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['name'] for s in response.data], ['Main Store'])

    def test_superuser_sees_all_stores(self):
        TestDataFactory.create_store('A Store')
        TestDataFactory.create_store('B Store')
        self.client.authenticate_user(TestDataFactory.create_user(role=None, is_superuser=True))
        response = self.client.get('/api/v1/stores/')
        self.assertEqual(len(response.data), 2)

    def test_create_store_makes_creator_administrator(self):
        user = TestDataFactory.create_user(role=None)
        self.client.authenticate_user(user)

        response = self.client.post('/api/v1/stores/', {'name': '  Corner Shop  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Corner Shop')

        user.refresh_from_db()
        self.assertEqual(user.store_id, response.data['id'])
        self.assertEqual(user.role_name, Role.ADMINISTRATOR)
        self.assertTrue(AuditLog.objects.filter(model_name='Store', action='create').exists())

    def test_create_store_keeps_existing_membership(self):
        store = TestDataFactory.create_store()
        user = TestDataFactory.create_user(store=store, role=Role.ACCTG)
        self.client.authenticate_user(user)

        response = self.client.post('/api/v1/stores/', {'name': 'Second Shop'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user.refresh_from_db()
        self.assertEqual(user.store_id, store.id)
        self.assertEqual(user.role_name, Role.ACCTG)

    def test_create_store_blank_name(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/stores/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Store.objects.exists())


class StoreDetailTests(TestCase):
    """Test retrieving, renaming and deleting a store"""

    def setUp(self):
        self.store = TestDataFactory.create_store('Main Store')
        self.admin = TestDataFactory.create_user(store=self.store, role=Role.ADMINISTRATOR)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.url = f'/api/v1/stores/{self.store.id}/'

    def test_get_store(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Main Store')

    def test_rename_store(self):
        response = self.client.patch(self.url, {'name': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.store.refresh_from_db()
        self.assertEqual(self.store.name, 'Renamed')
        log = AuditLog.objects.get(model_name='Store', action='update')
        self.assertEqual(log.changes['name'], {'old': 'Main Store', 'new': 'Renamed'})

    def test_non_member_is_forbidden(self):
        outsider = TestDataFactory.create_user(store=TestDataFactory.create_store())
        self.client.authenticate_user(outsider)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_acctg_cannot_delete(self):
        acctg = TestDataFactory.create_user(store=self.store, role=Role.ACCTG)
        self.client.authenticate_user(acctg)
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Store.objects.filter(pk=self.store.id).exists())

    def test_reader_cannot_rename(self):
        reader = TestDataFactory.create_user(store=self.store, role=Role.USER)
        self.client.authenticate_user(reader)
        response = self.client.patch(self.url, {'name': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_empty_store(self):
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Store.objects.filter(pk=self.store.id).exists())
        self.admin.refresh_from_db()
        self.assertIsNone(self.admin.store_id)

    def test_delete_store_with_products_is_rejected(self):
        TestDataFactory.create_product(self.store)
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Store.objects.filter(pk=self.store.id).exists())
