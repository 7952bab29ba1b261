"""
Test utilities and factories for creating test data
"""
from decimal import Decimal
from io import BytesIO
import random
import string

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from delta_fashion.banners.models import Banner
from delta_fashion.catalog.models import Category, Product
from delta_fashion.orders.models import Order, OrderItem

User = get_user_model()

DEFAULT_ADDRESS = {
    'first_name': 'Amira',
    'last_name': 'Ben Salah',
    'email': 'amira@example.com',
    'phone': '+216 20 123 456',
    'street': '12 Rue de Marseille',
    'city': 'Tunis',
    'postal_code': '1000',
    'country': 'Tunisie',
}


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))

    @staticmethod
    def create_user(email=None, password='testpass123', role='user', **extra):
        """Create a test user"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6)}@test.com'
        extra.setdefault('first_name', 'Test')
        extra.setdefault('last_name', 'User')
        extra.setdefault('phone', '+216 20 000 000')
        return User.objects.create_user(email=email, password=password, role=role, **extra)

    @staticmethod
    def create_admin(email=None, password='adminpass123'):
        """Create a user with the admin role"""
        if not email:
            email = f'admin_{TestDataFactory.random_string(6)}@test.com'
        return TestDataFactory.create_user(email=email, password=password, role='admin')

    @staticmethod
    def create_category(name=None, parent=None, is_active=True, order=0):
        """Create a test category"""
        if not name:
            name = f'Category {TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=f'Test category {name}',
            parent=parent,
            is_active=is_active,
            order=order,
        )

    @staticmethod
    def create_product(name=None, category=None, price=Decimal('49.90'), total_stock=20,
                       variants=None, **extra):
        """Create a test product, optionally with variants"""
        if not name:
            name = f'Product {TestDataFactory.random_string(6)}'
        if not category:
            category = TestDataFactory.create_category()
        extra.setdefault('images', ['images-1700000000000-123456789.webp'])
        product = Product.objects.create(
            name=name,
            description=f'Description of {name} for tests',
            price=price,
            category=category,
            total_stock=total_stock,
            **extra
        )
        if variants:
            product.replace_variants(variants)
            product.refresh_from_db()
        return product

    @staticmethod
    def create_order(user=None, product=None, quantity=1, guest_email='', **extra):
        """Create a test order with one line"""
        if not product:
            product = TestDataFactory.create_product()
        if user is None and not guest_email:
            guest_email = 'guest@test.com'
        order = Order(
            user=user,
            guest_email=guest_email,
            shipping_address=dict(DEFAULT_ADDRESS),
            billing_address=dict(DEFAULT_ADDRESS),
            payment_method=extra.pop('payment_method', 'cash_on_delivery'),
            shipping_cost=Decimal('7.00'),
            **extra
        )
        item = OrderItem(product=product, name=product.name, price=product.final_price, quantity=quantity)
        order.calculate_totals(items=[item])
        order.save()
        item.order = order
        item.save()
        return order

    @staticmethod
    def create_banner(title=None, **extra):
        """Create a test banner"""
        if not title:
            title = f'Banner {TestDataFactory.random_string(6)}'
        extra.setdefault('image', 'image-1700000000000-123456789.webp')
        return Banner.objects.create(title=title, **extra)

    @staticmethod
    def create_image_file(name='photo.jpg', size=(1600, 900), color='red', image_format='JPEG',
                          content_type='image/jpeg'):
        """An in-memory image upload"""
        buffer = BytesIO()
        Image.new('RGB', size, color).save(buffer, format=image_format)
        return SimpleUploadedFile(name, buffer.getvalue(), content_type=content_type)


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
