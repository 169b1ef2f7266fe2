"""
Test suite for the orders module
Tests: storefront checkout, order listing and filters, paid / delivered updates, export
"""
import io
from decimal import Decimal

from django.test import TestCase, override_settings
from openpyxl import load_workbook
from rest_framework import status

from backend.catalog.spreadsheet import XLSX_CONTENT_TYPE
from backend.core.models import Role, AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.orders.models import Order, OrderItem


class CheckoutTests(TestCase):
    """Test placing orders from the storefront"""

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.pen = TestDataFactory.create_product(self.store, name='Pen', price=Decimal('12.50'))
        self.pad = TestDataFactory.create_product(self.store, name='Pad', price=Decimal('40.00'))
        self.client = AuthenticatedAPIClient()
        self.url = f'/api/v1/stores/{self.store.id}/orders/'

    def checkout_payload(self, **overrides):
        payload = {
            'company_name': 'Acme Corp',
            'po_number': 'PO-2024-001',
            'address': '1 Ayala Ave, Makati',
            'contact_number': '09171234567',
            'client_name': 'Juan Dela Cruz',
            'client_email': 'juan@acme.com',
            'shipping_fee': '50.00',
            'items': [
                {'product_id': self.pen.id, 'quantity': 4},
                {'product_id': self.pad.id, 'quantity': 2},
            ],
        }
        payload.update(overrides)
        return payload

    def test_checkout_is_public(self):
        response = self.client.post(self.url, self.checkout_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        order = Order.objects.get(pk=response.data['id'])
        self.assertEqual(order.store_id, self.store.id)
        self.assertFalse(order.is_paid)
        self.assertFalse(order.order_status)
        # 4 x 12.50 + 2 x 40.00 + 50.00 shipping
        self.assertEqual(order.total_amount_item_and_shipping, Decimal('180.00'))
        self.assertEqual(
            sorted(OrderItem.objects.filter(order=order).values_list('total_item_amount', flat=True)),
            [Decimal('50.00'), Decimal('80.00')]
        )
        self.assertEqual(response.data['items_total'], '130.00')

    def test_checkout_without_shipping_fee(self):
        payload = self.checkout_payload()
        del payload['shipping_fee']
        response = self.client.post(self.url, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_amount_item_and_shipping'], '130.00')

    def test_checkout_requires_items(self):
        response = self.client.post(self.url, self.checkout_payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(str(response.data['items'][0]), 'Product ids are required')
        self.assertFalse(Order.objects.exists())

    def test_checkout_rejects_archived_product(self):
        archived = TestDataFactory.create_product(self.store, is_archived=True)
        response = self.client.post(self.url, self.checkout_payload(items=[
            {'product_id': archived.id, 'quantity': 1}
        ]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_checkout_rejects_product_of_other_store(self):
        foreign = TestDataFactory.create_product(TestDataFactory.create_store())
        response = self.client.post(self.url, self.checkout_payload(items=[
            {'product_id': self.pen.id, 'quantity': 1},
            {'product_id': foreign.id, 'quantity': 1},
        ]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_checkout_rejects_zero_quantity(self):
        response = self.client.post(self.url, self.checkout_payload(items=[
            {'product_id': self.pen.id, 'quantity': 0}
        ]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_checkout_invalid_email(self):
        response = self.client.post(self.url, self.checkout_payload(client_email='not-an-email'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('client_email', response.data)


class OrderListTests(TestCase):
    """Test the back office order list"""

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.admin = TestDataFactory.create_user(store=self.store, role=Role.ADMINISTRATOR)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.url = f'/api/v1/stores/{self.store.id}/orders/'

        product = TestDataFactory.create_product(self.store, name='Stapler')
        self.delivered = TestDataFactory.create_order(self.store, items=[(product, 1)], is_paid=True,
                                                      order_status=True, po_number='PO-DELIVERED')
        self.paid = TestDataFactory.create_order(self.store, items=[(product, 2)], is_paid=True,
                                                 po_number='PO-PAID', company_name='Globex')
        self.open = TestDataFactory.create_order(self.store, items=[(product, 3)], po_number='PO-OPEN')
        TestDataFactory.create_order(TestDataFactory.create_store(), items=[
            (TestDataFactory.create_product(TestDataFactory.create_store()), 1)
        ])

    def po_numbers(self, response):
        return sorted(order['po_number'] for order in response.data['results'])

    def test_list_requires_authentication(self):
        self.client.logout()
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_with_summary(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['summary'], {'total': 3, 'completed': 1, 'processing': 2})
        self.assertEqual(response.data['results'][0]['products'], 'Stapler')

    def test_status_filters(self):
        expectations = {
            'delivered': ['PO-DELIVERED'],
            'processing': ['PO-OPEN', 'PO-PAID'],
            'paid': ['PO-DELIVERED', 'PO-PAID'],
            'unpaid': ['PO-OPEN'],
            'all': ['PO-DELIVERED', 'PO-OPEN', 'PO-PAID'],
        }
        for status_filter, expected in expectations.items():
            response = self.client.get(self.url, {'status': status_filter})
            self.assertEqual(self.po_numbers(response), expected, status_filter)

    def test_invalid_status(self):
        response = self.client.get(self.url, {'status': 'shipped'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search(self):
        response = self.client.get(self.url, {'search': 'globex'})
        self.assertEqual(self.po_numbers(response), ['PO-PAID'])
        response = self.client.get(self.url, {'search': 'po-open'})
        self.assertEqual(self.po_numbers(response), ['PO-OPEN'])

    def test_pagination(self):
        response = self.client.get(self.url, {'limit': 2})
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['next'], 2)

    def test_non_member_is_forbidden(self):
        outsider = TestDataFactory.create_user(store=TestDataFactory.create_store())
        self.client.authenticate_user(outsider)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @override_settings(CURRENCY='PHP')
    def test_export(self):
        response = self.client.get(f'{self.url}export/', {'status': 'paid'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], XLSX_CONTENT_TYPE)

        sheet = load_workbook(io.BytesIO(response.content)).active
        self.assertEqual(sheet['B1'].value, 'PO Number')
        self.assertEqual(sheet['I1'].value, 'Shipping Fee (PHP)')
        self.assertEqual(sheet['J1'].value, 'Total (PHP)')
        self.assertEqual(sorted(sheet.cell(row=r, column=2).value for r in range(2, sheet.max_row + 1)),
                         ['PO-DELIVERED', 'PO-PAID'])


class OrderDetailTests(TestCase):
    """Test retrieving and updating a single order"""

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.acctg = TestDataFactory.create_user(store=self.store, role=Role.ACCTG)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.acctg)

        self.product = TestDataFactory.create_product(self.store, price=Decimal('100.00'))
        self.order = TestDataFactory.create_order(self.store, items=[(self.product, 2)],
                                                  shipping_fee=Decimal('25.00'))
        self.url = f'/api/v1/stores/{self.store.id}/orders/{self.order.id}/'

    def test_get_order(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['order_items']), 1)
        self.assertEqual(response.data['order_items'][0]['quantity'], 2)
        self.assertEqual(response.data['total_amount_item_and_shipping'], '225.00')

    def test_mark_paid_keeps_accounting_attachment(self):
        response = self.client.patch(self.url, {
            'is_paid': True,
            'acctg_remarks': 'Paid via bank transfer',
            'acctg_attached_url': 'https://cdn.example.com/receipt.pdf',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.order.refresh_from_db()
        self.assertTrue(self.order.is_paid)
        self.assertIsNotNone(self.order.paid_at)
        self.assertEqual(self.order.acctg_remarks, 'Paid via bank transfer')
        self.assertEqual(self.order.acctg_attached_url, 'https://cdn.example.com/receipt.pdf')
        self.assertTrue(AuditLog.objects.filter(action='order_paid', object_id=str(self.order.id)).exists())

    def test_mark_delivered(self):
        response = self.client.patch(self.url, {
            'order_status': True,
            'store_remarks': 'Received by guard',
            'store_attached_url': 'https://cdn.example.com/dr.pdf',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertTrue(self.order.order_status)
        self.assertIsNotNone(self.order.delivered_at)
        self.assertEqual(self.order.store_attached_url, 'https://cdn.example.com/dr.pdf')
        self.assertTrue(AuditLog.objects.filter(action='order_delivered').exists())

    def test_unmark_paid_clears_timestamp(self):
        self.client.patch(self.url, {'is_paid': True}, format='json')
        self.client.patch(self.url, {'is_paid': False}, format='json')
        self.order.refresh_from_db()
        self.assertFalse(self.order.is_paid)
        self.assertIsNone(self.order.paid_at)

    def test_shipping_fee_change_recomputes_total(self):
        response = self.client.patch(self.url, {'shipping_fee': '40.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.total_amount_item_and_shipping, Decimal('240.00'))
        self.assertTrue(AuditLog.objects.filter(action='update', model_name='Order').exists())

    def test_invalid_attachment_url(self):
        response = self.client.patch(self.url, {'is_paid': True, 'acctg_attached_url': 'not a url'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.order.refresh_from_db()
        self.assertFalse(self.order.is_paid)

    def test_acctg_cannot_delete(self):
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_deletes_order(self):
        admin = TestDataFactory.create_user(store=self.store, role=Role.ADMINISTRATOR)
        self.client.authenticate_user(admin)
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Order.objects.filter(pk=self.order.id).exists())
        self.assertFalse(OrderItem.objects.filter(order_id=self.order.id).exists())

    def test_order_of_other_store_is_not_found(self):
        other_store = TestDataFactory.create_store()
        other = TestDataFactory.create_order(other_store, items=[(TestDataFactory.create_product(other_store), 1)])
        response = self.client.get(f'/api/v1/stores/{self.store.id}/orders/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class MyOrdersTests(TestCase):
    """Test the customer's own order history"""

    def test_orders_matching_email(self):
        store = TestDataFactory.create_store()
        customer = TestDataFactory.create_user(email='buyer@example.com', role=Role.USER)
        product = TestDataFactory.create_product(store)
        mine = TestDataFactory.create_order(store, items=[(product, 1)], client_email='Buyer@Example.com')
        TestDataFactory.create_order(store, items=[(product, 1)], client_email='someone@example.com')

        client = AuthenticatedAPIClient()
        client.authenticate_user(customer)
        response = client.get('/api/v1/my-orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([order['id'] for order in response.data], [mine.id])
