"""
Test suite for the orders module
Tests: Order numbers, checkout, stock movements, lifecycle, guest tracking
"""
import re
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

from django.core import mail
from django.test import TestCase, TransactionTestCase
from rest_framework import status

from delta_fashion.core.test_utils import TestDataFactory, AuthenticatedAPIClient, DEFAULT_ADDRESS
from delta_fashion.orders.models import (
    Order, OrderNumberGenerationError, generate_order_number, ORDER_NUMBER_SAVE_ATTEMPTS
)

ORDER_NUMBER_PATTERN = re.compile(r'^CMD-\d{6}-\d{5}$')


class OrderNumberTests(TestCase):
    """Test order number generation and collision handling"""

    def test_format(self):
        self.assertRegex(generate_order_number(), ORDER_NUMBER_PATTERN)

    def test_uses_local_date(self):
        moment = datetime(2025, 3, 7, 23, 30, tzinfo=dt_timezone.utc)
        # 00:30 on the 8th in Tunis
        self.assertTrue(generate_order_number(now=moment).startswith('CMD-250308-'))

    def test_assigned_on_save(self):
        order = TestDataFactory.create_order()
        self.assertRegex(order.order_number, ORDER_NUMBER_PATTERN)

    def test_orders_get_distinct_numbers(self):
        product = TestDataFactory.create_product()
        numbers = {TestDataFactory.create_order(product=product).order_number for _ in range(10)}
        self.assertEqual(len(numbers), 10)

    def test_custom_number_kept(self):
        order = TestDataFactory.create_order(order_number='CMD-250101-12345')
        order.refresh_from_db()
        self.assertEqual(order.order_number, 'CMD-250101-12345')

    def test_number_not_regenerated_on_update(self):
        order = TestDataFactory.create_order()
        number = order.order_number
        order.admin_notes = 'Emballage cadeau'
        order.save()
        order.refresh_from_db()
        self.assertEqual(order.order_number, number)

    def test_collision_retries_with_new_number(self):
        product = TestDataFactory.create_product()
        TestDataFactory.create_order(product=product, order_number='CMD-250101-11111')
        with patch('delta_fashion.orders.models.generate_order_number',
                   side_effect=['CMD-250101-11111', 'CMD-250101-22222']) as generator:
            order = TestDataFactory.create_order(product=product)
        self.assertEqual(order.order_number, 'CMD-250101-22222')
        self.assertEqual(generator.call_count, 2)
        self.assertEqual(Order.objects.count(), 2)

    def test_collision_attempts_are_bounded(self):
        product = TestDataFactory.create_product()
        TestDataFactory.create_order(product=product, order_number='CMD-250101-11111')
        with patch('delta_fashion.orders.models.generate_order_number',
                   return_value='CMD-250101-11111') as generator:
            with self.assertRaises(OrderNumberGenerationError):
                TestDataFactory.create_order(product=product)
        self.assertEqual(generator.call_count, ORDER_NUMBER_SAVE_ATTEMPTS)
        self.assertEqual(Order.objects.count(), 1)

    def test_generate_unique_order_number_skips_taken(self):
        TestDataFactory.create_order(order_number='CMD-250101-11111')
        with patch('delta_fashion.orders.models.generate_order_number',
                   side_effect=['CMD-250101-11111', 'CMD-250101-33333']):
            self.assertEqual(Order.generate_unique_order_number(), 'CMD-250101-33333')

    def test_generate_unique_order_number_gives_up(self):
        TestDataFactory.create_order(order_number='CMD-250101-11111')
        with patch('delta_fashion.orders.models.generate_order_number', return_value='CMD-250101-11111'):
            with self.assertRaises(OrderNumberGenerationError):
                Order.generate_unique_order_number()


class OrderNumberConcurrencyTests(TransactionTestCase):
    """Orders saved by competing writers never share a number"""

    def setUp(self):
        self.product = TestDataFactory.create_product(total_stock=50)

    def test_competitor_takes_number_between_generation_and_insert(self):
        def generator():
            if not Order.objects.filter(order_number='CMD-250101-11111').exists():
                # Another checkout commits the same number first
                TestDataFactory.create_order(product=self.product, order_number='CMD-250101-11111')
                return 'CMD-250101-11111'
            return 'CMD-250101-22222'

        with patch('delta_fashion.orders.models.generate_order_number', side_effect=generator):
            order = TestDataFactory.create_order(product=self.product)

        numbers = list(Order.objects.values_list('order_number', flat=True))
        self.assertEqual(order.order_number, 'CMD-250101-22222')
        self.assertEqual(len(numbers), 2)
        self.assertEqual(len(set(numbers)), 2)

    def test_colliding_generator_yields_distinct_numbers(self):
        count = 6
        # Each number comes up twice in a row, so every order after the first collides once
        sequence = []
        for index in range(count):
            number = f'CMD-250101-{index:05d}'
            sequence.extend([number, number])

        with patch('delta_fashion.orders.models.generate_order_number', side_effect=sequence):
            orders = [TestDataFactory.create_order(product=self.product) for _ in range(count)]

        numbers = list(Order.objects.values_list('order_number', flat=True))
        self.assertEqual(len(numbers), count)
        self.assertEqual(len(set(numbers)), count)
        self.assertEqual(sorted(numbers), sorted(order.order_number for order in orders))


class OrderModelTests(TestCase):
    """Test Order model methods"""

    def test_totals(self):
        product = TestDataFactory.create_product(price=Decimal('25.50'))
        order = TestDataFactory.create_order(product=product, quantity=3)
        self.assertEqual(order.subtotal, Decimal('76.50'))
        self.assertEqual(order.total, Decimal('83.50'))

    def test_requires_user_or_guest_email(self):
        from django.core.exceptions import ValidationError

        order = Order(shipping_address=dict(DEFAULT_ADDRESS), payment_method='cash_on_delivery')
        with self.assertRaises(ValidationError):
            order.save()

    def test_guest_email_lowercased(self):
        order = TestDataFactory.create_order(guest_email='Client@Example.COM')
        self.assertEqual(order.guest_email, 'client@example.com')

    def test_mark_as_delivered_settles_cash_payment(self):
        order = TestDataFactory.create_order(order_status='shipped')
        order.mark_as_delivered()
        self.assertEqual(order.payment_status, 'paid')
        self.assertIsNotNone(order.delivered_at)

    def test_stats_counts_revenue_statuses(self):
        product = TestDataFactory.create_product(price=Decimal('10.00'))
        TestDataFactory.create_order(product=product, order_status='confirmed')
        TestDataFactory.create_order(product=product, order_status='delivered')
        TestDataFactory.create_order(product=product, order_status='cancelled')
        stats = Order.stats()
        self.assertEqual(stats['total_orders'], 2)
        self.assertEqual(stats['total_revenue'], 34.0)
        self.assertEqual(stats['average_order_value'], 17.0)


class OrderCreateAPITests(TestCase):
    """Test checkout"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.product = TestDataFactory.create_product(
            name='Robe Élégante Noire', price=Decimal('89.99'),
            variants=[
                {'size': 'M', 'color': 'Noir', 'stock': 5},
                {'size': 'L', 'color': 'Noir', 'stock': 1},
            ]
        )

    def payload(self, items=None, **overrides):
        data = {
            'items': items or [{'product': self.product.pk, 'quantity': 2, 'size': 'M', 'color': 'Noir'}],
            'shipping_address': dict(DEFAULT_ADDRESS),
            'payment_method': 'cash_on_delivery',
        }
        data.update(overrides)
        return data

    def test_guest_order(self):
        response = self.client.post('/api/orders/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        order = response.data['order']
        self.assertRegex(order['order_number'], ORDER_NUMBER_PATTERN)
        self.assertEqual(order['guest_email'], 'amira@example.com')
        self.assertIsNone(order['user'])
        self.assertEqual(Decimal(order['subtotal']), Decimal('179.98'))
        self.assertEqual(Decimal(order['total']), Decimal('186.98'))
        self.assertEqual(order['billing_address']['city'], 'Tunis')
        self.assertEqual(order['items'][0]['name'], 'Robe Élégante Noire')

    def test_stock_and_sold_count_updated(self):
        self.client.post('/api/orders/', self.payload(), format='json')
        self.product.refresh_from_db()
        self.assertEqual(self.product.get_variant_stock('M', 'Noir'), 3)
        self.assertEqual(self.product.total_stock, 4)
        self.assertEqual(self.product.sold_count, 2)

    def test_authenticated_order(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.post('/api/orders/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        order = Order.objects.get(pk=response.data['order']['id'])
        self.assertEqual(order.user, user)
        self.assertEqual(order.guest_email, '')

    def test_confirmation_email(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post('/api/orders/', self.payload(), format='json')
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(response.data['order']['order_number'], mail.outbox[0].subject)
        self.assertEqual(mail.outbox[0].to, ['amira@example.com'])

    def test_insufficient_stock(self):
        items = [{'product': self.product.pk, 'quantity': 2, 'size': 'L', 'color': 'Noir'}]
        response = self.client.post('/api/orders/', self.payload(items=items), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())
        self.assertEqual(self.product.get_variant_stock('L', 'Noir'), 1)

    def test_stock_checked_across_lines(self):
        items = [
            {'product': self.product.pk, 'quantity': 3, 'size': 'M', 'color': 'Noir'},
            {'product': self.product.pk, 'quantity': 3, 'size': 'M', 'color': 'noir'},
        ]
        response = self.client.post('/api/orders/', self.payload(items=items), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inactive_product(self):
        product = TestDataFactory.create_product(is_active=False)
        items = [{'product': product.pk, 'quantity': 1}]
        response = self.client.post('/api/orders/', self.payload(items=items), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_product(self):
        items = [{'product': 9999, 'quantity': 1}]
        response = self.client.post('/api/orders/', self.payload(items=items), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_empty_cart(self):
        response = self.client.post('/api/orders/', self.payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_address(self):
        address = dict(DEFAULT_ADDRESS, email='not-an-email')
        response = self.client.post('/api/orders/', self.payload(shipping_address=address), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('shipping_address', response.data['errors'])

    def test_order_number_exhaustion(self):
        TestDataFactory.create_order(order_number='CMD-250101-11111')
        with patch('delta_fashion.orders.models.generate_order_number', return_value='CMD-250101-11111'):
            response = self.client.post('/api/orders/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(self.product.get_variant_stock('M', 'Noir'), 5)

    def test_unexpected_error_returns_json(self):
        with patch('delta_fashion.catalog.models.Product.update_stock', side_effect=RuntimeError('disk full')):
            with self.assertLogs('delta_fashion.orders.views', level='ERROR'):
                response = self.client.post('/api/orders/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['message'], 'Error creating order.')
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(self.product.get_variant_stock('M', 'Noir'), 5)


class OrderAccessAPITests(TestCase):
    """Test listing, detail and guest lookup"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.product = TestDataFactory.create_product()
        self.own_order = TestDataFactory.create_order(user=self.user, product=self.product)
        self.shipped_order = TestDataFactory.create_order(
            user=self.user, product=self.product, order_status='shipped'
        )
        self.other_order = TestDataFactory.create_order(user=self.other, product=self.product)
        self.guest_order = TestDataFactory.create_order(product=self.product, guest_email='guest@test.com')

    def test_list_requires_authentication(self):
        response = self.client.get('/api/orders/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_own_orders(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['page_size'], 10)

    def test_list_filter_status(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/orders/', {'status': 'shipped'})
        self.assertEqual([order['id'] for order in response.data['results']], [self.shipped_order.pk])

    def test_list_invalid_date(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/orders/', {'start_date': '07/03/2025'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_lists_all(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/orders/')
        self.assertEqual(response.data['count'], 4)

    def test_detail_owner(self):
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/orders/{self.own_order.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order']['order_number'], self.own_order.order_number)

    def test_detail_other_user(self):
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/orders/{self.other_order.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_by_number(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/orders/number/{self.other_order.order_number}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_guest_lookup(self):
        url = f'/api/orders/guest/{self.guest_order.order_number}/GUEST@test.com/'
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order']['id'], self.guest_order.pk)

    def test_guest_lookup_wrong_email(self):
        url = f'/api/orders/guest/{self.guest_order.order_number}/someone@test.com/'
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class OrderLifecycleAPITests(TestCase):
    """Test status updates, cancellation and statistics"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.product = TestDataFactory.create_product(price=Decimal('20.00'), total_stock=10)
        self.order = TestDataFactory.create_order(user=self.user, product=self.product, quantity=3)

    def test_status_update_requires_admin(self):
        self.client.authenticate_user(self.user)
        response = self.client.put(f'/api/orders/{self.order.pk}/status/', {'order_status': 'shipped'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_update(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/orders/{self.order.pk}/status/', {
            'order_status': 'shipped',
            'tracking_number': 'TN123456',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order']['order_status'], 'shipped')
        self.assertEqual(response.data['order']['tracking_number'], 'TN123456')

    def test_invalid_status(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/orders/{self.order.pk}/status/', {'order_status': 'lost'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delivered(self):
        self.client.authenticate_user(self.admin)
        self.client.put(f'/api/orders/{self.order.pk}/status/', {'order_status': 'delivered'}, format='json')
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'paid')
        self.assertIsNotNone(self.order.delivered_at)

    def test_admin_cancel_restores_stock_once(self):
        self.client.authenticate_user(self.admin)
        url = f'/api/orders/{self.order.pk}/status/'
        self.client.put(url, {'order_status': 'cancelled'}, format='json')
        self.client.put(url, {'order_status': 'cancelled'}, format='json')
        self.product.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.product.total_stock, 13)
        self.assertEqual(self.order.cancelled_by, 'admin')

    def test_customer_cancel(self):
        self.client.authenticate_user(self.user)
        response = self.client.put(f'/api/orders/{self.order.pk}/cancel/', {'reason': 'Erreur de taille'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order']['order_status'], 'cancelled')
        self.assertEqual(response.data['order']['cancelled_by'], 'customer')
        self.assertEqual(response.data['order']['cancellation_reason'], 'Erreur de taille')
        self.product.refresh_from_db()
        self.assertEqual(self.product.total_stock, 13)

    def test_cancel_other_users_order(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.put(f'/api/orders/{self.order.pk}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_cancel_delivered(self):
        self.order.mark_as_delivered()
        self.client.authenticate_user(self.user)
        response = self.client.put(f'/api/orders/{self.order.pk}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancelled_order_cannot_be_reopened(self):
        self.client.authenticate_user(self.admin)
        url = f'/api/orders/{self.order.pk}/status/'
        self.client.put(url, {'order_status': 'cancelled'}, format='json')
        response = self.client.put(url, {'order_status': 'pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.authenticate_user(self.user)
        response = self.client.put(f'/api/orders/{self.order.pk}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.order.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(self.order.order_status, 'cancelled')
        self.assertEqual(self.product.total_stock, 13)

    def test_status_update_error_returns_json(self):
        self.client.authenticate_user(self.admin)
        with patch('delta_fashion.orders.models.Order.mark_as_delivered', side_effect=RuntimeError('db gone')):
            with self.assertLogs('delta_fashion.orders.views', level='ERROR'):
                response = self.client.put(
                    f'/api/orders/{self.order.pk}/status/', {'order_status': 'delivered'}, format='json'
                )
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertTrue(response['Content-Type'].startswith('application/json'))
        self.assertEqual(response.data['message'], 'Error updating order status.')
        self.order.refresh_from_db()
        self.assertEqual(self.order.order_status, 'pending')

    def test_cancel_error_returns_json(self):
        self.client.authenticate_user(self.user)
        with patch('delta_fashion.orders.models.Order.restore_stock', side_effect=RuntimeError('db gone')):
            with self.assertLogs('delta_fashion.orders.views', level='ERROR'):
                response = self.client.put(f'/api/orders/{self.order.pk}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['message'], 'Error cancelling order.')
        self.order.refresh_from_db()
        self.assertEqual(self.order.order_status, 'pending')

    def test_stats(self):
        TestDataFactory.create_order(product=self.product, quantity=1, order_status='confirmed')
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/orders/stats/summary/', {'period': '7d'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['orders_count'], 2)
        self.assertEqual(response.data['total_orders'], 1)
        self.assertEqual(response.data['total_revenue'], 27.0)
        self.assertEqual(response.data['status_counts']['pending'], 1)
        self.assertEqual(response.data['payment_status_counts']['pending'], 2)

    def test_stats_invalid_period(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/orders/stats/summary/', {'period': '2w'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
