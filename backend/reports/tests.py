"""
Test suite for the reports module
Tests: dashboard, accounting report, popular products and report caching
"""
import calendar
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.cache_utils import get_cached_report, cache_report, invalidate_reports_cache
from backend.core.models import Role
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ReportsTestCase(TestCase):
    """
    Store with two paid orders and one open order:
    paper 2 x 100.00 + 10.00 shipping (delivered), pens 3 x 50.00, paper 1 x 100.00 unpaid
    """

    def setUp(self):
        cache.clear()
        self.store = TestDataFactory.create_store()
        self.reader = TestDataFactory.create_user(store=self.store, role=Role.USER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.reader)

        self.paper_category = TestDataFactory.create_category(self.store, name='Paper')
        self.pens_category = TestDataFactory.create_category(self.store, name='Pens')
        self.paper = TestDataFactory.create_product(self.store, name='Bond Paper', price=Decimal('100.00'),
                                                    category=self.paper_category, is_featured=True)
        self.pen = TestDataFactory.create_product(self.store, name='Ballpen', price=Decimal('50.00'),
                                                  category=self.pens_category, is_featured=True)
        self.archived = TestDataFactory.create_product(self.store, name='Old Stock', price=Decimal('5.00'),
                                                       is_featured=True, is_archived=True)

        TestDataFactory.create_order(self.store, items=[(self.paper, 2)], shipping_fee=Decimal('10.00'),
                                     is_paid=True, order_status=True)
        TestDataFactory.create_order(self.store, items=[(self.pen, 3)], is_paid=True)
        self.open_order = TestDataFactory.create_order(self.store, items=[(self.paper, 1)])

        self.base_url = f'/api/v1/stores/{self.store.id}'
        self.current_month = timezone.localdate().month


class DashboardTests(ReportsTestCase):
    """Test the store dashboard"""

    def test_dashboard_figures(self):
        response = self.client.get(f'{self.base_url}/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_revenue'], 360.0)
        self.assertEqual(response.data['sales_count'], 2)
        self.assertEqual(response.data['delivered_count'], 1)
        self.assertEqual(response.data['stock_count'], 2)
        self.assertEqual(len(response.data['pending_orders']), 1)
        self.assertEqual(response.data['pending_orders'][0]['id'], self.open_order.id)
        self.assertEqual(response.data['pending_orders'][0]['total_amount_item_and_shipping'], '100.00')

    def test_graph_revenue_covers_every_month(self):
        graph = self.client.get(f'{self.base_url}/dashboard/').data['graph_revenue']
        self.assertEqual([entry['name'] for entry in graph], list(calendar.month_abbr)[1:])
        # Paid lines at current prices, shipping excluded
        self.assertEqual(graph[self.current_month - 1]['total'], 350.0)
        self.assertEqual(sum(entry['total'] for entry in graph), 350.0)

    def test_dashboard_requires_membership(self):
        self.client.logout()
        response = self.client.get(f'{self.base_url}/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        self.client.authenticate_user(TestDataFactory.create_user(store=TestDataFactory.create_store()))
        response = self.client.get(f'{self.base_url}/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AccountingReportTests(ReportsTestCase):
    """Test the accounting report"""

    def test_accounting_report(self):
        response = self.client.get(f'{self.base_url}/accounting-report/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_revenue'], 360.0)
        self.assertEqual(response.data['total_orders'], 2)
        self.assertEqual(response.data['total_products'], 3)
        self.assertEqual(response.data['monthly_revenue'], [
            {'name': calendar.month_name[self.current_month], 'total': 360.0}
        ])
        self.assertEqual(response.data['sales_this_month'], 360.0)
        self.assertEqual(response.data['category_distribution'], [
            {'name': 'Paper', 'value': 200.0},
            {'name': 'Pens', 'value': 150.0},
        ])

    def test_empty_store(self):
        store = TestDataFactory.create_store()
        admin = TestDataFactory.create_user(store=store)
        self.client.authenticate_user(admin)
        response = self.client.get(f'/api/v1/stores/{store.id}/accounting-report/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_revenue'], 0.0)
        self.assertEqual(response.data['monthly_revenue'], [])
        self.assertEqual(response.data['sales_this_month'], 0)


class PopularProductsTests(ReportsTestCase):
    """Test the storefront popular products list"""

    def test_featured_active_products_only(self):
        self.client.logout()
        response = self.client.get(f'{self.base_url}/popular-products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(sorted(p['name'] for p in response.data), ['Ballpen', 'Bond Paper'])

    def test_sort_by_price(self):
        response = self.client.get(f'{self.base_url}/popular-products/', {'sort': 'priceLowToHigh'})
        self.assertEqual([p['name'] for p in response.data], ['Ballpen', 'Bond Paper'])

        response = self.client.get(f'{self.base_url}/popular-products/', {'sort': 'priceHighToLow'})
        self.assertEqual([p['name'] for p in response.data], ['Bond Paper', 'Ballpen'])

    def test_invalid_sort(self):
        response = self.client.get(f'{self.base_url}/popular-products/', {'sort': 'cheapest'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ReportCacheTests(ReportsTestCase):
    """Test report caching and invalidation"""

    def test_cache_is_scoped_per_store(self):
        other_store = TestDataFactory.create_store()
        _, key = get_cached_report('dashboard', self.store.id, 2024)
        _, other_key = get_cached_report('dashboard', other_store.id, 2024)
        cache_report(key, {'sales_count': 1})
        cache_report(other_key, {'sales_count': 2})

        self.assertNotEqual(key, other_key)
        self.assertEqual(get_cached_report('dashboard', self.store.id, 2024)[0], {'sales_count': 1})

        invalidate_reports_cache(self.store.id)
        self.assertIsNone(get_cached_report('dashboard', self.store.id, 2024)[0])

    def test_dashboard_served_from_cache_until_commit(self):
        url = f'{self.base_url}/dashboard/'
        self.assertEqual(self.client.get(url).data['sales_count'], 2)

        # Invalidation waits for the transaction to commit
        TestDataFactory.create_order(self.store, items=[(self.pen, 1)], is_paid=True)
        self.assertEqual(self.client.get(url).data['sales_count'], 2)

        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.create_order(self.store, items=[(self.pen, 1)], is_paid=True)
        self.assertEqual(self.client.get(url).data['sales_count'], 4)

    def test_bulk_price_update_invalidates_reports(self):
        admin = TestDataFactory.create_user(store=self.store, role=Role.ADMINISTRATOR)
        self.client.authenticate_user(admin)
        url = f'{self.base_url}/dashboard/'
        self.assertEqual(self.client.get(url).data['graph_revenue'][self.current_month - 1]['total'], 350.0)

        response = self.client.patch(f'{self.base_url}/products/bulk-update/', {
            'products': [{'id': self.pen.id, 'price': '60.00'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get(url).data['graph_revenue'][self.current_month - 1]['total'], 380.0)
