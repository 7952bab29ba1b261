from rest_framework import serializers

from delta_fashion.core.serializers import UserBriefSerializer
from delta_fashion.core.utils import make_slug
from .models import Category, Product, ProductVariant, ProductReview, SIZE_CHOICES


class CategoryBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'slug']


class CategorySerializer(serializers.ModelSerializer):
    image_url = serializers.CharField(read_only=True)
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'description', 'image', 'image_url', 'icon', 'is_active',
                  'parent', 'order', 'meta_title', 'meta_description', 'product_count',
                  'created_at', 'updated_at']

    def get_product_count(self, obj):
        if hasattr(obj, 'product_count'):
            return obj.product_count
        return obj.products.filter(is_active=True).count()


class CategoryDetailSerializer(CategorySerializer):
    subcategories = serializers.SerializerMethodField()
    parent = CategoryBriefSerializer(read_only=True)

    class Meta(CategorySerializer.Meta):
        fields = CategorySerializer.Meta.fields + ['subcategories']

    def get_subcategories(self, obj):
        children = obj.subcategories.filter(is_active=True).order_by('order', 'name')
        return CategorySerializer(children, many=True).data


class CategoryTreeSerializer(serializers.ModelSerializer):
    image_url = serializers.CharField(read_only=True)
    subcategories = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'icon', 'image_url', 'order', 'subcategories']

    def get_subcategories(self, obj):
        children = getattr(obj, 'active_subcategories', None)
        if children is None:
            children = obj.subcategories.filter(is_active=True).order_by('order', 'name')
        return CategoryTreeSerializer(children, many=True).data


class CategoryWriteSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=50)
    parent = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), required=False, allow_null=True,
        error_messages={'does_not_exist': 'Parent category not found.'}
    )

    class Meta:
        model = Category
        fields = ['name', 'description', 'icon', 'is_active', 'parent', 'order',
                  'meta_title', 'meta_description']

    def validate_name(self, value):
        value = value.strip()
        queryset = Category.objects.filter(slug=make_slug(value))
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists() or Category.objects.filter(name__iexact=value).exclude(
                pk=getattr(self.instance, 'pk', None)).exists():
            raise serializers.ValidationError('A category with this name already exists.')
        return value

    def validate_parent(self, value):
        if value is None or self.instance is None:
            return value
        # Walk up from the new parent; meeting ourselves means a cycle
        ancestor = value
        while ancestor is not None:
            if ancestor.pk == self.instance.pk:
                raise serializers.ValidationError('A category cannot be its own parent.')
            ancestor = ancestor.parent
        return value


class ProductVariantSerializer(serializers.ModelSerializer):
    size = serializers.ChoiceField(choices=SIZE_CHOICES)
    color = serializers.CharField(max_length=50)
    stock = serializers.IntegerField(min_value=0, default=0)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True)

    class Meta:
        model = ProductVariant
        fields = ['id', 'size', 'color', 'stock', 'price']


class ColorSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50)
    code = serializers.CharField(max_length=20, required=False, allow_blank=True)


class ProductReviewSerializer(serializers.ModelSerializer):
    user = UserBriefSerializer(read_only=True)
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')

    class Meta:
        model = ProductReview
        fields = ['id', 'user', 'rating', 'comment', 'created_at']


class ProductListSerializer(serializers.ModelSerializer):
    category = CategoryBriefSerializer(read_only=True)
    final_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    in_stock = serializers.BooleanField(read_only=True)
    image_urls = serializers.ListField(child=serializers.CharField(), read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'short_description', 'price', 'original_price', 'discount',
                  'final_price', 'images', 'image_urls', 'category', 'brand', 'colors', 'sizes',
                  'total_stock', 'in_stock', 'is_active', 'is_featured', 'is_new', 'is_on_sale',
                  'rating_average', 'rating_count', 'sold_count', 'created_at']


class ProductDetailSerializer(ProductListSerializer):
    sub_category = CategoryBriefSerializer(read_only=True)
    variants = ProductVariantSerializer(many=True, read_only=True)
    reviews = ProductReviewSerializer(many=True, read_only=True)

    class Meta(ProductListSerializer.Meta):
        fields = ProductListSerializer.Meta.fields + [
            'description', 'sub_category', 'sku', 'variants', 'tags', 'weight', 'dimensions',
            'free_shipping', 'meta_title', 'meta_description', 'view_count', 'reviews', 'updated_at'
        ]


class ProductWriteSerializer(serializers.ModelSerializer):
    """Create/update payload. Images are managed by the view."""
    name = serializers.CharField(min_length=2, max_length=100)
    description = serializers.CharField(min_length=10, max_length=2000)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    original_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    discount = serializers.IntegerField(min_value=0, max_value=100, required=False)
    category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(),
        error_messages={'does_not_exist': 'Category not found.'}
    )
    sub_category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), required=False, allow_null=True,
        error_messages={'does_not_exist': 'Subcategory not found.'}
    )
    variants = ProductVariantSerializer(many=True, required=False)
    colors = ColorSerializer(many=True, required=False)
    sizes = serializers.ListField(child=serializers.ChoiceField(choices=SIZE_CHOICES), required=False)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    dimensions = serializers.DictField(child=serializers.FloatField(min_value=0), required=False)
    total_stock = serializers.IntegerField(min_value=0, required=False)

    class Meta:
        model = Product
        fields = ['name', 'description', 'short_description', 'price', 'original_price', 'discount',
                  'category', 'sub_category', 'brand', 'sku', 'variants', 'colors', 'sizes', 'tags',
                  'weight', 'dimensions', 'free_shipping', 'total_stock', 'is_active', 'is_featured',
                  'is_new', 'is_on_sale', 'meta_title', 'meta_description']

    def validate_name(self, value):
        value = value.strip()
        queryset = Product.objects.filter(slug=make_slug(value))
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('A product with this name already exists.')
        return value

    def validate_sku(self, value):
        return value.strip() or None if value else None

    def validate_variants(self, value):
        seen = set()
        for variant in value:
            key = (variant['size'], variant['color'].lower())
            if key in seen:
                raise serializers.ValidationError(
                    f"Duplicate variant {variant['size']}/{variant['color']}."
                )
            seen.add(key)
        return value

    def create(self, validated_data):
        variants = validated_data.pop('variants', None)
        product = Product.objects.create(**validated_data)
        if variants:
            product.replace_variants(variants)
        return product

    def update(self, instance, validated_data):
        variants = validated_data.pop('variants', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        if variants is not None:
            instance.replace_variants(variants)
        return instance
