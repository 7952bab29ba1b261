"""
Test suite for the admin analytics module
Tests: Dashboard, Sales series, Product and customer analytics, Backup, Health, Cache invalidation
"""
from datetime import timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from delta_fashion.core.cache_signals import suspend_cache_signals
from delta_fashion.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from delta_fashion.reports.views import get_product_analytics


class ReportsTestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_user(first_name='Amira', last_name='Ben Salah')
        self.category = TestDataFactory.create_category(name='Femmes')
        self.product = TestDataFactory.create_product(
            name='Robe Élégante Noire', category=self.category, price=Decimal('50.00'), total_stock=5
        )
        self.order = TestDataFactory.create_order(
            user=self.customer, product=self.product, quantity=2, order_status='confirmed'
        )
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)


class DashboardTests(ReportsTestCase):

    def test_requires_admin(self):
        self.client.authenticate_user(self.customer)
        response = self.client.get('/api/admin/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/admin/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_dashboard(self):
        response = self.client.get('/api/admin/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        totals = response.data['totals']
        self.assertEqual(totals['users'], 1)
        self.assertEqual(totals['orders'], 1)
        self.assertEqual(totals['revenue'], 107.0)
        self.assertEqual(response.data['orders_by_status']['confirmed'], 1)
        self.assertEqual(response.data['top_products'][0]['quantity'], 2)
        self.assertEqual(response.data['top_products'][0]['revenue'], 100.0)
        self.assertEqual(response.data['top_customers'][0]['email'], self.customer.email)
        self.assertEqual(response.data['monthly'][-1]['orders'], 1)

    def test_new_order_invalidates_cache(self):
        self.client.get('/api/admin/dashboard/')
        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.create_order(user=self.customer, product=self.product, order_status='delivered')
        response = self.client.get('/api/admin/dashboard/')
        self.assertEqual(response.data['totals']['orders'], 2)

    def test_invalidation_waits_for_commit(self):
        self.client.get('/api/admin/dashboard/')
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            TestDataFactory.create_order(user=self.customer, product=self.product, order_status='delivered')
            response = self.client.get('/api/admin/dashboard/')
            self.assertEqual(response.data['totals']['orders'], 1)
        self.assertTrue(callbacks)
        response = self.client.get('/api/admin/dashboard/')
        self.assertEqual(response.data['totals']['orders'], 2)

    def test_suspended_signals_invalidate_once_on_exit(self):
        self.client.get('/api/admin/dashboard/')
        with suspend_cache_signals():
            TestDataFactory.create_product(category=self.category)
        response = self.client.get('/api/admin/dashboard/')
        self.assertEqual(response.data['totals']['products'], 2)


class SalesAnalyticsTests(ReportsTestCase):

    def test_default_range(self):
        TestDataFactory.create_order(product=self.product, order_status='cancelled')
        response = self.client.get('/api/admin/analytics/sales/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['group_by'], 'day')
        self.assertEqual(response.data['totals']['total_orders'], 1)
        self.assertEqual(len(response.data['series']), 1)
        self.assertEqual(response.data['series'][0]['period'], timezone.localdate().isoformat())
        self.assertEqual(response.data['series'][0]['revenue'], 107.0)

    def test_group_by_month(self):
        response = self.client.get('/api/admin/analytics/sales/', {'group_by': 'month'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['series'][0]['period'].endswith('-01'))

    def test_invalid_group_by(self):
        response = self.client.get('/api/admin/analytics/sales/', {'group_by': 'hour'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_range(self):
        today = timezone.localdate()
        response = self.client.get('/api/admin/analytics/sales/', {
            'start_date': today.isoformat(),
            'end_date': (today - timedelta(days=5)).isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_range_without_orders(self):
        response = self.client.get('/api/admin/analytics/sales/', {
            'start_date': '2020-01-01',
            'end_date': '2020-01-31',
        })
        self.assertEqual(response.data['series'], [])
        self.assertEqual(response.data['totals']['total_revenue'], 0)


class ProductAnalyticsTests(ReportsTestCase):

    def test_product_analytics(self):
        TestDataFactory.create_product(category=self.category, total_stock=0)
        response = self.client.get('/api/admin/analytics/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['total'], 2)
        self.assertEqual(response.data['stats']['out_of_stock'], 1)
        self.assertEqual([row['id'] for row in response.data['low_stock']], [self.product.pk])

    def test_cached_between_calls(self):
        get_product_analytics()
        with self.assertNumQueries(0):
            get_product_analytics()

    def test_stock_change_invalidates_cache(self):
        self.assertEqual(get_product_analytics()['stats']['out_of_stock'], 0)
        with self.captureOnCommitCallbacks(execute=True):
            self.product.adjust_stock(-self.product.total_stock)
        data = get_product_analytics()
        self.assertEqual(data['stats']['out_of_stock'], 1)
        self.assertEqual([row['id'] for row in data['out_of_stock']], [self.product.pk])

    def test_review_invalidates_cache(self):
        get_product_analytics()
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            self.product.add_review(self.customer, 4)
        self.assertEqual(len(callbacks), 1)


class CustomerAnalyticsTests(ReportsTestCase):

    def test_customer_analytics(self):
        response = self.client.get('/api/admin/analytics/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['total'], 1)
        self.assertEqual(response.data['stats']['new_last_30_days'], 1)
        top = response.data['top_customers'][0]
        self.assertEqual(top['full_name'], 'Amira Ben Salah')
        self.assertEqual(top['orders_count'], 1)
        self.assertEqual(top['total_spent'], 107.0)


class SystemTests(ReportsTestCase):

    def test_backup(self):
        response = self.client.post('/api/admin/backup/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['counts']['orders'], 1)
        self.assertEqual(response.data['counts']['users'], 2)

    def test_system_health(self):
        response = self.client.get('/api/admin/system/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'OK')
        self.assertEqual(response.data['database']['status'], 'connected')
        self.assertEqual(response.data['cache']['status'], 'connected')
