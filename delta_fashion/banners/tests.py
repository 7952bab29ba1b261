"""
Test suite for the banners module
"""
import os
import shutil
import tempfile
from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from delta_fashion.banners.models import Banner
from delta_fashion.core.models import AuditLog
from delta_fashion.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class BannerModelTests(TestCase):

    def test_live_window(self):
        now = timezone.now()
        current = TestDataFactory.create_banner(title='Soldes', end_date=now + timedelta(days=3))
        open_ended = TestDataFactory.create_banner(title='Nouvelle collection')
        TestDataFactory.create_banner(title='Bientôt', start_date=now + timedelta(days=1))
        TestDataFactory.create_banner(title='Terminé', start_date=now - timedelta(days=10),
                                      end_date=now - timedelta(days=1))
        TestDataFactory.create_banner(title='Masqué', is_active=False)

        self.assertEqual(set(Banner.objects.live()), {current, open_ended})
        self.assertTrue(current.is_live)

    def test_live_ordering(self):
        second = TestDataFactory.create_banner(order=2)
        first = TestDataFactory.create_banner(order=1)
        self.assertEqual(list(Banner.objects.live()), [first, second])


class BannerAPITests(TestCase):

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.settings_override = override_settings(MEDIA_ROOT=self.media_root, AZURE_STORAGE_CONNECTION_STRING='')
        self.settings_override.enable()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()
        self.banner = TestDataFactory.create_banner(title='Soldes d\'été')
        self.hidden = TestDataFactory.create_banner(title='Ancienne promo', is_active=False)

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def titles(self, response):
        return [banner['title'] for banner in response.data['banners']]

    def test_list_live_banners(self):
        response = self.client.get('/api/banners/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.titles(response), ['Soldes d\'été'])
        self.assertEqual(response.data['banners'][0]['image_url'], f'/uploads/{self.banner.image}')

    def test_include_inactive_admin_only(self):
        response = self.client.get('/api/banners/', {'include_inactive': 'true'})
        self.assertNotIn('Ancienne promo', self.titles(response))
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/banners/', {'include_inactive': 'true'})
        self.assertIn('Ancienne promo', self.titles(response))

    def test_create(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/banners/', {
            'title': 'Black Friday',
            'subtitle': 'Jusqu\'à -50%',
            'background_color': '#000000',
            'image': TestDataFactory.create_image_file(),
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        banner = Banner.objects.get(pk=response.data['banner']['id'])
        self.assertTrue(banner.image.startswith('image-'))
        self.assertTrue(os.path.exists(os.path.join(self.media_root, banner.image)))

    def test_create_error_returns_json(self):
        self.client.authenticate_user(self.admin)
        with patch('delta_fashion.banners.views.BannerWriteSerializer.save', side_effect=RuntimeError('db gone')):
            with self.assertLogs('delta_fashion.banners.views', level='ERROR'):
                response = self.client.post('/api/banners/', {
                    'title': 'Black Friday',
                    'image': TestDataFactory.create_image_file(),
                }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['message'], 'Error creating banner.')
        self.assertFalse(Banner.objects.filter(title='Black Friday').exists())
        self.assertEqual(os.listdir(self.media_root), [])

    def test_toggle_error_returns_json(self):
        self.client.authenticate_user(self.admin)
        with patch('delta_fashion.banners.models.Banner.save', side_effect=RuntimeError('db gone')):
            with self.assertLogs('delta_fashion.banners.views', level='ERROR'):
                response = self.client.put(f'/api/banners/{self.banner.pk}/toggle/')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.banner.refresh_from_db()
        self.assertTrue(self.banner.is_active)

    def test_create_requires_image(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/banners/', {'title': 'Black Friday'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('image', response.data['errors'])

    def test_create_requires_admin(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/banners/', {
            'title': 'Black Friday',
            'image': TestDataFactory.create_image_file(),
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_end_date_after_start_date(self):
        self.client.authenticate_user(self.admin)
        now = timezone.now()
        response = self.client.patch(f'/api/banners/{self.banner.pk}/', {
            'start_date': now.isoformat(),
            'end_date': (now - timedelta(days=1)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data['errors'])

    def test_invalid_color(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/banners/{self.banner.pk}/', {'text_color': 'white'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/banners/{self.banner.pk}/', {
            'title': 'Soldes d\'hiver',
            'order': 3,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.banner.refresh_from_db()
        self.assertEqual(self.banner.title, 'Soldes d\'hiver')
        self.assertEqual(self.banner.order, 3)

    def test_toggle(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/banners/{self.hidden.pk}/toggle/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['banner']['is_active'])
        self.client.put(f'/api/banners/{self.hidden.pk}/toggle/')
        self.hidden.refresh_from_db()
        self.assertFalse(self.hidden.is_active)

    def test_delete(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/banners/{self.banner.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Banner.objects.filter(pk=self.banner.pk).exists())
        self.assertTrue(AuditLog.objects.filter(model_name='Banner', action='delete').exists())
