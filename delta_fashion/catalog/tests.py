"""
Test suite for the catalog module
Tests: Category tree, product pricing and stock, filters, uploads, reviews
"""
import json
import os
import shutil
import tempfile
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from delta_fashion.catalog.models import Category, Product
from delta_fashion.core.models import AuditLog
from delta_fashion.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ProductModelTests(TestCase):
    """Test Product model methods"""

    def setUp(self):
        self.category = TestDataFactory.create_category(name='Femmes')

    def test_slug_from_name(self):
        product = TestDataFactory.create_product(name='Robe Élégante Noire', category=self.category)
        self.assertEqual(product.slug, 'robe-elegante-noire')

    def test_discount_derives_price(self):
        product = TestDataFactory.create_product(
            category=self.category, price=Decimal('1.00'),
            original_price=Decimal('119.99'), discount=25
        )
        self.assertEqual(product.price, Decimal('89.99'))
        self.assertEqual(product.final_price, Decimal('89.99'))

    def test_blank_sku_stored_as_null(self):
        first = TestDataFactory.create_product(category=self.category, sku='')
        second = TestDataFactory.create_product(category=self.category, sku='')
        self.assertIsNone(first.sku)
        self.assertIsNone(second.sku)

    def test_total_stock_follows_variants(self):
        product = TestDataFactory.create_product(
            category=self.category, total_stock=0,
            variants=[
                {'size': 'S', 'color': 'Noir', 'stock': 4},
                {'size': 'M', 'color': 'Noir', 'stock': 6},
            ]
        )
        self.assertEqual(product.total_stock, 10)

    def test_update_stock_on_variant(self):
        product = TestDataFactory.create_product(
            category=self.category,
            variants=[{'size': 'M', 'color': 'Rose', 'stock': 3}]
        )
        product.update_stock('M', 'rose', -2)
        self.assertEqual(product.get_variant_stock('M', 'Rose'), 1)
        self.assertEqual(product.total_stock, 1)

    def test_update_stock_never_negative(self):
        product = TestDataFactory.create_product(category=self.category, total_stock=2)
        product.update_stock('', '', -5)
        product.refresh_from_db()
        self.assertEqual(product.total_stock, 0)

    def test_adjust_stock(self):
        product = TestDataFactory.create_product(category=self.category, total_stock=2)
        self.assertEqual(product.adjust_stock(3), 5)
        product.refresh_from_db()
        self.assertEqual(product.total_stock, 5)

    def test_add_review_updates_rating(self):
        product = TestDataFactory.create_product(category=self.category)
        product.add_review(TestDataFactory.create_user(), 5)
        product.add_review(TestDataFactory.create_user(), 2)
        product.refresh_from_db()
        self.assertEqual(product.rating_count, 2)
        self.assertEqual(product.rating_average, Decimal('3.50'))


class CategoryAPITests(TestCase):
    """Test category endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.hommes = TestDataFactory.create_category(name='Hommes', order=1)
        self.femmes = TestDataFactory.create_category(name='Femmes', order=2)
        self.robes = TestDataFactory.create_category(name='Robes', parent=self.femmes)
        self.hidden = TestDataFactory.create_category(name='Archive', is_active=False)

    def test_list_active_only(self):
        response = self.client.get('/api/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [category['name'] for category in response.data['categories']]
        self.assertNotIn('Archive', names)

    def test_include_inactive_ignored_for_guests(self):
        response = self.client.get('/api/categories/', {'include_inactive': 'true'})
        names = [category['name'] for category in response.data['categories']]
        self.assertNotIn('Archive', names)

    def test_include_inactive_for_admin(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/categories/', {'include_inactive': 'true'})
        names = [category['name'] for category in response.data['categories']]
        self.assertIn('Archive', names)

    def test_product_count(self):
        TestDataFactory.create_product(category=self.hommes)
        TestDataFactory.create_product(category=self.hommes, is_active=False)
        response = self.client.get('/api/categories/', {'parent': 'root'})
        counts = {category['name']: category['product_count'] for category in response.data['categories']}
        self.assertEqual(counts['Hommes'], 1)

    def test_tree(self):
        response = self.client.get('/api/categories/tree/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([category['name'] for category in response.data['categories']], ['Hommes', 'Femmes'])
        self.assertEqual(response.data['categories'][1]['subcategories'][0]['name'], 'Robes')

    def test_by_slug(self):
        response = self.client.get('/api/categories/slug/femmes/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['category']['subcategories'][0]['slug'], 'robes')

    def test_inactive_detail_hidden(self):
        response = self.client.get(f'/api/categories/{self.hidden.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_create_requires_admin(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/categories/', {'name': 'Enfants'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/categories/', {'name': 'Enfants', 'parent': self.hommes.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category']['slug'], 'enfants')
        self.assertTrue(AuditLog.objects.filter(model_name='Category', action='create').exists())

    def test_create_duplicate_name(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/categories/', {'name': 'hommes'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_unknown_parent(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/categories/', {'name': 'Bébé', 'parent': 9999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_error_returns_json(self):
        self.client.authenticate_user(self.admin)
        with patch('delta_fashion.catalog.views.CategoryWriteSerializer.save', side_effect=RuntimeError('db gone')):
            with self.assertLogs('delta_fashion.catalog.views', level='ERROR'):
                response = self.client.post('/api/categories/', {'name': 'Enfants'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['message'], 'Error creating category.')
        self.assertFalse(Category.objects.filter(name='Enfants').exists())

    def test_update_error_returns_json(self):
        self.client.authenticate_user(self.admin)
        with patch('delta_fashion.catalog.views.CategoryWriteSerializer.save', side_effect=RuntimeError('db gone')):
            with self.assertLogs('delta_fashion.catalog.views', level='ERROR'):
                response = self.client.patch(f'/api/categories/{self.hommes.pk}/', {'name': 'Garçons'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['message'], 'Error updating category.')

    def test_parent_cannot_be_self(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/categories/{self.femmes.pk}/', {'parent': self.femmes.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_parent_cannot_be_descendant(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/categories/{self.femmes.pk}/', {'parent': self.robes.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_with_subcategories(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/categories/{self.femmes.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_with_products(self):
        TestDataFactory.create_product(category=self.hommes)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/categories/{self.hommes.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/categories/{self.robes.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Category.objects.filter(pk=self.robes.pk).exists())

    def test_set_order(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/categories/{self.femmes.pk}/order/', {'order': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.femmes.refresh_from_db()
        self.assertEqual(self.femmes.order, 0)

    def test_category_products_include_subcategories(self):
        dress = TestDataFactory.create_product(category=self.robes)
        top = TestDataFactory.create_product(category=self.femmes)
        TestDataFactory.create_product(category=self.hommes)
        response = self.client.get(f'/api/categories/{self.femmes.pk}/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({product['id'] for product in response.data['results']}, {dress.pk, top.pk})


class ProductListAPITests(TestCase):
    """Test product listing, filters and sorting"""

    def setUp(self):
        self.client = APIClient()
        self.category = TestDataFactory.create_category(name='Hommes')
        self.other_category = TestDataFactory.create_category(name='Accessoires')
        self.shirt = TestDataFactory.create_product(
            name='T-shirt Classique Blanc', category=self.category, price=Decimal('29.99'),
            tags=['coton', 'basique'], is_featured=True
        )
        self.jeans = TestDataFactory.create_product(
            name='Jean Slim Bleu', category=self.category, price=Decimal('79.99'),
            original_price=Decimal('100.00'), discount=20, total_stock=0
        )
        self.bag = TestDataFactory.create_product(
            name='Sac Cuir Marron', category=self.other_category, price=Decimal('149.99'), brand='Maison Sfax'
        )
        self.hidden = TestDataFactory.create_product(name='Ancien Modèle', category=self.category, is_active=False)

    def ids(self, response):
        return [product['id'] for product in response.data['results']]

    def test_list_excludes_inactive(self):
        response = self.client.get('/api/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertNotIn(self.hidden.pk, self.ids(response))

    def test_default_limit(self):
        response = self.client.get('/api/products/')
        self.assertEqual(response.data['page_size'], 12)

    def test_limit_above_max(self):
        response = self.client.get('/api/products/', {'limit': 51})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_filter_category(self):
        response = self.client.get('/api/products/', {'category': self.other_category.pk})
        self.assertEqual(self.ids(response), [self.bag.pk])

    def test_filter_price_range(self):
        response = self.client.get('/api/products/', {'min_price': 50, 'max_price': 100})
        self.assertEqual(self.ids(response), [self.jeans.pk])

    def test_invalid_price_filter(self):
        response = self.client.get('/api/products/', {'min_price': 'cheap'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search_name_brand_and_tags(self):
        self.assertEqual(self.ids(self.client.get('/api/products/', {'search': 'jean'})), [self.jeans.pk])
        self.assertEqual(self.ids(self.client.get('/api/products/', {'search': 'sfax'})), [self.bag.pk])
        self.assertEqual(self.ids(self.client.get('/api/products/', {'search': 'COTON'})), [self.shirt.pk])

    def test_filter_on_sale(self):
        response = self.client.get('/api/products/', {'on_sale': 'true'})
        self.assertEqual(self.ids(response), [self.jeans.pk])

    def test_filter_in_stock(self):
        response = self.client.get('/api/products/', {'in_stock': 'true'})
        self.assertNotIn(self.jeans.pk, self.ids(response))

    def test_sort_price(self):
        response = self.client.get('/api/products/', {'sort': 'price_asc'})
        self.assertEqual(self.ids(response), [self.shirt.pk, self.jeans.pk, self.bag.pk])
        response = self.client.get('/api/products/', {'sort': 'price_desc'})
        self.assertEqual(self.ids(response), [self.bag.pk, self.jeans.pk, self.shirt.pk])

    def test_invalid_sort(self):
        response = self.client.get('/api/products/', {'sort': 'cheapest'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_featured(self):
        response = self.client.get('/api/products/featured/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([product['id'] for product in response.data['products']], [self.shirt.pk])

    def test_sale(self):
        response = self.client.get('/api/products/sale/')
        self.assertEqual([product['id'] for product in response.data['products']], [self.jeans.pk])

    def test_new_honours_limit(self):
        response = self.client.get('/api/products/new/', {'limit': 2})
        self.assertEqual(len(response.data['products']), 2)

    def test_public_list_ignores_bad_token(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')
        response = self.client.get('/api/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class ProductDetailAPITests(TestCase):
    """Test product detail and reviews"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.product = TestDataFactory.create_product(name='Top Fleuri Rose')

    def test_detail_increments_views(self):
        self.client.get(f'/api/products/{self.product.pk}/')
        response = self.client.get(f'/api/products/{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.product.refresh_from_db()
        self.assertEqual(self.product.view_count, 2)

    def test_by_slug(self):
        response = self.client.get('/api/products/slug/top-fleuri-rose/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['product']['id'], self.product.pk)

    def test_inactive_hidden_from_customers(self):
        product = TestDataFactory.create_product(is_active=False)
        response = self.client.get(f'/api/products/{product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get(f'/api/products/{product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_review_requires_authentication(self):
        response = self.client.post(f'/api/products/{self.product.pk}/reviews/', {'rating': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_review_once(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        url = f'/api/products/{self.product.pk}/reviews/'
        response = self.client.post(url, {'rating': 4, 'comment': 'Très joli'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['rating_count'], 1)
        response = self.client.post(url, {'rating': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_review_rating_bounds(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post(f'/api/products/{self.product.pk}/reviews/', {'rating': 6}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ProductWriteAPITests(TestCase):
    """Test product creation, update and deletion with image uploads"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.settings_override = override_settings(MEDIA_ROOT=self.media_root, AZURE_STORAGE_CONNECTION_STRING='')
        self.settings_override.enable()
        self.admin = TestDataFactory.create_admin()
        self.category = TestDataFactory.create_category(name='Femmes')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def payload(self, **overrides):
        data = {
            'name': 'Robe Longue Été',
            'description': 'Robe longue légère en viscose, idéale pour l\'été.',
            'price': '59.90',
            'category': self.category.pk,
            'variants': json.dumps([
                {'size': 'S', 'color': 'Bleu', 'stock': 3},
                {'size': 'M', 'color': 'Bleu', 'stock': 5},
            ]),
            'tags': json.dumps(['robe', 'été']),
            'images': [TestDataFactory.create_image_file()],
        }
        data.update(overrides)
        return data

    def test_create_product(self):
        response = self.client.post('/api/products/', self.payload(), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(pk=response.data['product']['id'])
        self.assertEqual(product.slug, 'robe-longue-ete')
        self.assertEqual(product.total_stock, 8)
        self.assertTrue(product.is_featured)
        self.assertEqual(len(product.images), 1)
        self.assertTrue(product.images[0].endswith('.webp'))
        self.assertTrue(os.path.exists(os.path.join(self.media_root, product.images[0])))
        self.assertTrue(response.data['product']['image_urls'][0].startswith('/uploads/images-'))

    def test_uploaded_image_is_resized(self):
        from PIL import Image

        response = self.client.post('/api/products/', self.payload(), format='multipart')
        reference = response.data['product']['images'][0]
        with Image.open(os.path.join(self.media_root, reference)) as image:
            self.assertEqual(image.format, 'WEBP')
            self.assertLessEqual(max(image.size), 1200)

    def test_create_requires_image(self):
        data = self.payload()
        data.pop('images')
        response = self.client.post('/api/products/', data, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('images', response.data['errors'])

    def test_create_rejects_non_image(self):
        from django.core.files.uploadedfile import SimpleUploadedFile

        document = SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')
        response = self.client.post('/api/products/', self.payload(images=[document]), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_malformed_json(self):
        response = self.client.post('/api/products/', self.payload(variants='[{"size": '), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('variants', response.data['errors'])

    def test_create_unknown_category(self):
        response = self.client.post('/api/products/', self.payload(category=9999), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(os.listdir(self.media_root), [])

    def test_create_duplicate_name(self):
        TestDataFactory.create_product(name='Robe Longue Été', category=self.category)
        response = self.client.post('/api/products/', self.payload(), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_forbidden_for_customers(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/products/', self.payload(), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_images(self):
        product = Product.objects.get(
            pk=self.client.post('/api/products/', self.payload(), format='multipart').data['product']['id']
        )
        old_image = product.images[0]
        response = self.client.patch(f'/api/products/{product.pk}/', {
            'existing_images': json.dumps([]),
            'images_to_delete': json.dumps([old_image]),
            'images': [TestDataFactory.create_image_file(name='new.png', image_format='PNG', content_type='image/png')],
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(len(product.images), 1)
        self.assertNotEqual(product.images[0], old_image)
        self.assertFalse(os.path.exists(os.path.join(self.media_root, old_image)))

    def test_update_leaves_other_products_images(self):
        product = Product.objects.get(
            pk=self.client.post('/api/products/', self.payload(), format='multipart').data['product']['id']
        )
        other = Product.objects.get(pk=self.client.post('/api/products/', self.payload(
            name='Chemise Lin Blanche', images=[TestDataFactory.create_image_file(name='other.jpg')]
        ), format='multipart').data['product']['id'])
        foreign_image = other.images[0]

        response = self.client.patch(f'/api/products/{product.pk}/', {
            'images_to_delete': json.dumps([foreign_image, '../settings.py']),
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(os.path.exists(os.path.join(self.media_root, foreign_image)))
        other.refresh_from_db()
        self.assertEqual(other.images, [foreign_image])

    def test_update_removes_images_left_out_of_existing(self):
        product = Product.objects.get(
            pk=self.client.post('/api/products/', self.payload(), format='multipart').data['product']['id']
        )
        old_image = product.images[0]
        response = self.client.patch(f'/api/products/{product.pk}/', {
            'existing_images': json.dumps([]),
            'images': [TestDataFactory.create_image_file(name='new.jpg')],
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertNotIn(old_image, product.images)
        self.assertFalse(os.path.exists(os.path.join(self.media_root, old_image)))

    def test_update_must_keep_an_image(self):
        product = TestDataFactory.create_product(category=self.category)
        response = self.client.patch(f'/api/products/{product.pk}/', {
            'existing_images': json.dumps([]),
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_replaces_variants(self):
        product = TestDataFactory.create_product(
            category=self.category, variants=[{'size': 'S', 'color': 'Noir', 'stock': 2}]
        )
        response = self.client.patch(f'/api/products/{product.pk}/', {
            'variants': [{'size': 'L', 'color': 'Noir', 'stock': 7}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(list(product.variants.values_list('size', flat=True)), ['L'])
        self.assertEqual(product.total_stock, 7)

    def test_delete_removes_files(self):
        product = Product.objects.get(
            pk=self.client.post('/api/products/', self.payload(), format='multipart').data['product']['id']
        )
        path = os.path.join(self.media_root, product.images[0])
        response = self.client.delete(f'/api/products/{product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())
        self.assertFalse(os.path.exists(path))
