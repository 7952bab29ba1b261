from django.contrib import admin
from django.utils.safestring import mark_safe
from .models import Category, Product, ProductVariant, ProductReview


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'parent', 'order', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'slug']
    ordering = ['order', 'name']
    readonly_fields = ['slug', 'created_at', 'updated_at']


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'category', 'price', 'discount', 'total_stock', 'is_active', 'is_featured', 'created_at']
    list_filter = ['is_active', 'is_featured', 'is_new', 'is_on_sale', 'category', 'created_at']
    search_fields = ['name', 'sku', 'brand', 'description']
    ordering = ['-created_at']
    readonly_fields = ['slug', 'image_preview', 'rating_average', 'rating_count', 'view_count',
                       'sold_count', 'created_at', 'updated_at']
    inlines = [ProductVariantInline]

    def image_preview(self, obj):
        """Display the first product image"""
        urls = obj.image_urls
        if not urls:
            return '-'
        return mark_safe(f'<img src="{urls[0]}" style="max-width: 200px; max-height: 200px;" />')
    image_preview.short_description = 'Image'


@admin.register(ProductReview)
class ProductReviewAdmin(admin.ModelAdmin):
    list_display = ['product', 'user', 'rating', 'created_at']
    list_filter = ['rating', 'created_at']
    search_fields = ['product__name', 'user__email', 'comment']
    ordering = ['-created_at']
