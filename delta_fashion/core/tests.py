"""
Test suite for the core module
Tests: Authentication, users, wishlist, admin requests, audit logs, shared helpers
"""
from unittest.mock import patch

from django.core import mail
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from delta_fashion.core.models import User, AdminRequest, AuditLog
from delta_fashion.core.storage import get_image_url
from delta_fashion.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from delta_fashion.core.utils import make_slug, parse_bool


class HelperTests(TestCase):
    """Test shared helpers"""

    def test_make_slug_folds_accents(self):
        self.assertEqual(make_slug("Robe d'été Fleurie"), 'robe-d-ete-fleurie')

    def test_make_slug_strips_separators(self):
        self.assertEqual(make_slug('  --T-shirts & Polos!! '), 't-shirts-polos')

    def test_parse_bool(self):
        self.assertTrue(parse_bool('true'))
        self.assertTrue(parse_bool('1'))
        self.assertFalse(parse_bool('no'))
        self.assertFalse(parse_bool(None))

    def test_image_url_local_reference(self):
        self.assertEqual(get_image_url('images-1-2.webp'), '/uploads/images-1-2.webp')

    def test_image_url_remote_reference_unchanged(self):
        url = 'https://cdn.example.com/product-images/a.webp'
        self.assertEqual(get_image_url(url), url)

    def test_image_url_empty(self):
        self.assertIsNone(get_image_url(''))


class UserModelTests(TestCase):
    """Test the email based user model"""

    def test_email_is_lowercased(self):
        user = TestDataFactory.create_user(email='Mixed.Case@Test.com')
        self.assertEqual(user.email, 'mixed.case@test.com')

    def test_superuser_gets_admin_role(self):
        user = User.objects.create_superuser(email='root@test.com', password='rootpass123')
        self.assertEqual(user.role, User.ROLE_ADMIN)
        self.assertTrue(user.is_admin)

    def test_full_name(self):
        user = TestDataFactory.create_user(first_name='Amira', last_name='Ben Salah')
        self.assertEqual(user.full_name, 'Amira Ben Salah')


class AuthAPITests(TestCase):
    """Test register, login and profile endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def register_payload(self, **overrides):
        payload = {
            'first_name': 'Amira',
            'last_name': 'Ben Salah',
            'email': 'amira@test.com',
            'password': 'secret123',
            'phone': '+216 20 123 456',
        }
        payload.update(overrides)
        return payload

    def test_register(self):
        """Test registration returns tokens"""
        response = self.client.post('/api/auth/register/', self.register_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], 'user')

    def test_register_duplicate_email(self):
        """Test duplicate email is rejected case-insensitively"""
        TestDataFactory.create_user(email='amira@test.com')
        response = self.client.post('/api/auth/register/', self.register_payload(email='AMIRA@test.com'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Invalid data')
        self.assertIn('email', response.data['errors'])

    def test_register_short_password(self):
        response = self.client.post('/api/auth/register/', self.register_payload(password='123'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data['errors'])

    def test_register_invalid_phone(self):
        response = self.client.post('/api/auth/register/', self.register_payload(phone='call me'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('phone', response.data['errors'])

    def test_login(self):
        """Test login is case-insensitive on the email"""
        TestDataFactory.create_user(email='login@test.com', password='secret123')
        response = self.client.post('/api/auth/login/', {'email': 'LOGIN@test.com', 'password': 'secret123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['email'], 'login@test.com')

    def test_login_wrong_password(self):
        TestDataFactory.create_user(email='login@test.com', password='secret123')
        response = self.client.post('/api/auth/login/', {'email': 'login@test.com', 'password': 'wrong'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_disabled_account(self):
        TestDataFactory.create_user(email='off@test.com', password='secret123', is_active=False)
        response = self.client.post('/api/auth/login/', {'email': 'off@test.com', 'password': 'secret123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('disabled', response.data['message'])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], user.pk)

    def test_update_profile_merges_address(self):
        user = TestDataFactory.create_user(address={'city': 'Sousse', 'country': 'Tunisie'})
        self.client.authenticate_user(user)
        response = self.client.patch(
            '/api/auth/profile/',
            {'first_name': 'Yasmine', 'address': {'street': '5 Avenue Habib Bourguiba'}},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.first_name, 'Yasmine')
        self.assertEqual(user.address['city'], 'Sousse')
        self.assertEqual(user.address['street'], '5 Avenue Habib Bourguiba')

    def test_change_password(self):
        user = TestDataFactory.create_user(password='oldpass123')
        self.client.authenticate_user(user)
        response = self.client.put(
            '/api/auth/password/',
            {'current_password': 'oldpass123', 'new_password': 'newpass123'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertTrue(user.check_password('newpass123'))

    def test_change_password_wrong_current(self):
        user = TestDataFactory.create_user(password='oldpass123')
        self.client.authenticate_user(user)
        response = self.client.put(
            '/api/auth/password/',
            {'current_password': 'nope', 'new_password': 'newpass123'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_health_is_public(self):
        response = APIClient().get('/api/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'OK')


class UserAPITests(TestCase):
    """Test user management endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def test_list_users_as_admin(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/users/', {'role': 'user'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

    def test_list_users_as_customer_returns_self(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.user.pk)

    def test_invalid_pagination(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/users/', {'limit': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('limit', response.data['errors'])

    def test_view_other_user_forbidden(self):
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/users/{self.other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_customer_cannot_change_role(self):
        self.client.authenticate_user(self.user)
        response = self.client.patch(f'/api/users/{self.user.pk}/', {'role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, 'user')

    def test_admin_deactivates_user(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/users/{self.user.pk}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertFalse(self.user.is_active)
        self.assertTrue(AuditLog.objects.filter(model_name='User', action='update', object_id=str(self.user.pk)).exists())

    def test_cannot_delete_last_admin(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/users/{self.admin.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())

    def test_cannot_delete_user_with_orders(self):
        TestDataFactory.create_order(user=self.user)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/users/{self.user.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_user(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/users/{self.other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(User.objects.filter(pk=self.other.pk).exists())

    def test_update_error_returns_json(self):
        self.client.authenticate_user(self.admin)
        with patch('delta_fashion.core.views.UserUpdateSerializer.save', side_effect=RuntimeError('db gone')):
            with self.assertLogs('delta_fashion.core.views', level='ERROR'):
                response = self.client.patch(f'/api/users/{self.user.pk}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['message'], 'Error updating user.')

    def test_delete_error_returns_json(self):
        self.client.authenticate_user(self.admin)
        with patch('delta_fashion.core.models.User.delete', side_effect=RuntimeError('db gone')):
            with self.assertLogs('delta_fashion.core.views', level='ERROR'):
                response = self.client.delete(f'/api/users/{self.other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['message'], 'Error deleting user.')
        self.assertTrue(User.objects.filter(pk=self.other.pk).exists())

    def test_user_stats_admin_only(self):
        self.client.authenticate_user(self.user)
        self.assertEqual(self.client.get('/api/users/stats/summary/').status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/users/stats/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_users'], 3)
        self.assertEqual(response.data['admin_users'], 1)

    def test_user_orders(self):
        TestDataFactory.create_order(user=self.user)
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/users/{self.user.pk}/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)


class WishlistAPITests(TestCase):
    """Test wishlist endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.url = f'/api/users/{self.user.pk}/wishlist/'

    def test_add_and_list(self):
        response = self.client.post(f'{self.url}{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.get(self.url)
        self.assertEqual([item['id'] for item in response.data['wishlist']], [self.product.pk])

    def test_add_twice(self):
        self.client.post(f'{self.url}{self.product.pk}/')
        response = self.client.post(f'{self.url}{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_inactive_product(self):
        inactive = TestDataFactory.create_product(is_active=False)
        response = self.client.post(f'{self.url}{inactive.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_remove(self):
        self.user.wishlist.add(self.product)
        response = self.client.delete(f'{self.url}{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(self.user.wishlist.exists())


class AdminRequestAPITests(TestCase):
    """Test the admin promotion workflow"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def submit(self):
        self.client.authenticate_user(self.user)
        return self.client.post('/api/admin-requests/', {'message': 'I manage the Sfax store.'}, format='json')

    def test_submit_request(self):
        response = self.submit()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['request']['status'], 'pending')

    def test_duplicate_pending_request(self):
        self.submit()
        response = self.submit()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_cannot_submit(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/admin-requests/', {'message': 'Promote me'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_is_admin_only(self):
        self.submit()
        self.assertEqual(self.client.get('/api/admin-requests/').status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/admin-requests/', {'status': 'pending'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    @override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
    def test_approve_promotes_user(self):
        request_id = self.submit().data['request']['id']
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/admin-requests/{request_id}/approve/', {'review_notes': 'Welcome'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, 'admin')
        self.assertEqual(AdminRequest.objects.get(pk=request_id).reviewed_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(action='admin_request_approve').exists())
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.user.email])

    def test_reject_keeps_role(self):
        request_id = self.submit().data['request']['id']
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/admin-requests/{request_id}/reject/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, 'user')

    def test_review_twice(self):
        request_id = self.submit().data['request']['id']
        self.client.authenticate_user(self.admin)
        self.client.put(f'/api/admin-requests/{request_id}/reject/', {}, format='json')
        response = self.client.put(f'/api/admin-requests/{request_id}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_user_status(self):
        self.submit()
        response = self.client.get('/api/admin-requests/user/status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['has_request'])


class AuditLogAPITests(TestCase):
    """Test audit log listing"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        AuditLog.objects.create(user=self.admin, action='create', model_name='Product', object_id='1')
        AuditLog.objects.create(user=self.admin, action='delete', model_name='Category', object_id='2')

    def test_filter_by_model(self):
        response = self.client.get('/api/audit-logs/', {'model': 'Product'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_invalid_date(self):
        response = self.client.get('/api/audit-logs/', {'date_from': '01/02/2024'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
