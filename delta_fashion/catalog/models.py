from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.db.models import Avg, Count, F, Sum

from delta_fashion.core.cache_utils import invalidate_analytics_cache_on_commit
from delta_fashion.core.storage import get_image_url
from delta_fashion.core.utils import make_slug

SIZE_CHOICES = [(size, size) for size in [
    'XS', 'S', 'M', 'L', 'XL', 'XXL', 'XXXL',
    '36', '37', '38', '39', '40', '41', '42', '43', '44', '45', '46',
]]

TWO_PLACES = Decimal('0.01')


class Category(models.Model):
    """Product category. Categories form a tree through `parent`."""
    name = models.CharField(max_length=50, unique=True)
    slug = models.SlugField(max_length=60, unique=True)
    description = models.TextField(max_length=500, blank=True, default='')
    image = models.CharField(max_length=500, blank=True, default='')
    icon = models.CharField(max_length=50, default='shirt')
    is_active = models.BooleanField(default=True)
    parent = models.ForeignKey(
        'self', on_delete=models.PROTECT, null=True, blank=True, related_name='subcategories'
    )
    order = models.PositiveIntegerField(default=0)
    meta_title = models.CharField(max_length=60, blank=True, default='')
    meta_description = models.CharField(max_length=160, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'categories'
        ordering = ['order', 'name']
        verbose_name_plural = 'categories'
        indexes = [
            models.Index(fields=['is_active', 'order'], name='cat_active_order_idx'),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.slug = make_slug(self.name)
        super().save(*args, **kwargs)

    @property
    def image_url(self):
        return get_image_url(self.image)

    @classmethod
    def tree(cls):
        """Active root categories in display order, each with its active subcategories"""
        active_children = models.Prefetch(
            'subcategories',
            queryset=cls.objects.filter(is_active=True).order_by('order', 'name'),
            to_attr='active_subcategories',
        )
        return (
            cls.objects.filter(is_active=True, parent__isnull=True)
            .order_by('order', 'name')
            .prefetch_related(active_children)
        )


class Product(models.Model):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True)
    description = models.TextField(max_length=2000)
    short_description = models.CharField(max_length=200, blank=True, default='')
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    original_price = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )
    discount = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(100)])
    images = models.JSONField(default=list, blank=True)
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='products')
    sub_category = models.ForeignKey(
        Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='sub_products'
    )
    brand = models.CharField(max_length=100, blank=True, default='')
    sku = models.CharField(max_length=100, unique=True, null=True, blank=True)
    colors = models.JSONField(default=list, blank=True)
    sizes = models.JSONField(default=list, blank=True)
    total_stock = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    is_featured = models.BooleanField(default=False)
    is_new = models.BooleanField(default=True)
    is_on_sale = models.BooleanField(default=False)
    rating_average = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    rating_count = models.PositiveIntegerField(default=0)
    tags = models.JSONField(default=list, blank=True)
    weight = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    dimensions = models.JSONField(default=dict, blank=True)
    free_shipping = models.BooleanField(default=False)
    meta_title = models.CharField(max_length=60, blank=True, default='')
    meta_description = models.CharField(max_length=160, blank=True, default='')
    view_count = models.PositiveIntegerField(default=0)
    sold_count = models.PositiveIntegerField(default=0)
    wishlisted_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name='wishlist', db_table='user_wishlist'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active', 'category'], name='prod_active_cat_idx'),
            models.Index(fields=['is_active', 'is_featured'], name='prod_active_feat_idx'),
            models.Index(fields=['price'], name='prod_price_idx'),
            models.Index(fields=['-created_at'], name='prod_created_idx'),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.slug = make_slug(self.name)
        if self.sku == '':
            self.sku = None
        # Discounted products derive their price from the original price
        if self.original_price and self.discount and self.discount > 0:
            multiplier = Decimal(100 - self.discount) / Decimal(100)
            self.price = (Decimal(self.original_price) * multiplier).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        super().save(*args, **kwargs)

    @property
    def final_price(self):
        if self.discount and self.discount > 0 and self.original_price:
            multiplier = Decimal(100 - self.discount) / Decimal(100)
            return (Decimal(self.original_price) * multiplier).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        return self.price

    @property
    def in_stock(self):
        return self.total_stock > 0

    @property
    def image_urls(self):
        return [get_image_url(reference) for reference in self.images or []]

    def find_variant(self, size, color):
        if not size or not color:
            return None
        return self.variants.filter(size=size, color__iexact=color).first()

    def get_variant_stock(self, size, color):
        variant = self.find_variant(size, color)
        return variant.stock if variant else 0

    def refresh_total_stock(self, save=True):
        """Recompute total_stock from the variants, when the product has any"""
        if not self.variants.exists():
            return self.total_stock
        self.total_stock = self.variants.aggregate(total=Sum('stock'))['total'] or 0
        if save:
            Product.objects.filter(pk=self.pk).update(total_stock=self.total_stock)
            invalidate_analytics_cache_on_commit()
        return self.total_stock

    def replace_variants(self, variants):
        """Swap the variant set and re-derive total_stock"""
        with transaction.atomic():
            self.variants.all().delete()
            ProductVariant.objects.bulk_create([
                ProductVariant(
                    product=self,
                    size=variant['size'],
                    color=variant['color'],
                    stock=variant.get('stock', 0),
                    price=variant.get('price'),
                )
                for variant in variants
            ])
            if variants:
                self.refresh_total_stock()

    def update_stock(self, size, color, quantity):
        """
        Adjust stock by `quantity` (negative to sell, positive to restock).

        The matching variant is adjusted when size and color identify one;
        total_stock is always kept in step and never drops below zero.
        """
        variant = self.find_variant(size, color)
        if variant:
            variant.stock = max(0, variant.stock + quantity)
            variant.save(update_fields=['stock'])
            self.refresh_total_stock()
            return self.total_stock
        return self.adjust_stock(quantity)

    def adjust_stock(self, quantity):
        """Change total_stock directly, for products sold without variants"""
        self.total_stock = max(0, self.total_stock + quantity)
        Product.objects.filter(pk=self.pk).update(total_stock=self.total_stock)
        invalidate_analytics_cache_on_commit()
        return self.total_stock

    def add_review(self, user, rating, comment=''):
        review = ProductReview.objects.create(product=self, user=user, rating=rating, comment=comment)
        self.refresh_rating()
        return review

    def refresh_rating(self):
        stats = self.reviews.aggregate(average=Avg('rating'), count=Count('id'))
        self.rating_average = Decimal(stats['average'] or 0).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        self.rating_count = stats['count']
        Product.objects.filter(pk=self.pk).update(
            rating_average=self.rating_average,
            rating_count=self.rating_count,
        )
        invalidate_analytics_cache_on_commit()

    def increment_view_count(self):
        # Counted without touching the analytics cache; it expires on its own
        Product.objects.filter(pk=self.pk).update(view_count=F('view_count') + 1)
        self.view_count += 1


class ProductVariant(models.Model):
    """A size/color stock-keeping unit of a product"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    size = models.CharField(max_length=10, choices=SIZE_CHOICES)
    color = models.CharField(max_length=50)
    stock = models.PositiveIntegerField(default=0)
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    class Meta:
        db_table = 'product_variants'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(fields=['product', 'size', 'color'], name='unique_product_variant'),
        ]

    def __str__(self):
        return f"{self.product.name} - {self.size}/{self.color}"


class ProductReview(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='reviews')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='reviews')
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'product_reviews'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['product', 'user'], name='unique_review_per_user'),
        ]

    def __str__(self):
        return f"{self.product.name} - {self.rating}/5"
