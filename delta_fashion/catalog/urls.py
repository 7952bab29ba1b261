from django.urls import path
from .views import (
    product_list_create, featured_products, new_products, sale_products,
    product_detail, product_by_slug, product_reviews,
    category_list_create, category_tree, category_detail, category_by_slug,
    category_products, category_order
)

urlpatterns = [
    # Product endpoints
    path('products/', product_list_create, name='product-list-create'),
    path('products/featured/', featured_products, name='product-featured'),
    path('products/new/', new_products, name='product-new'),
    path('products/sale/', sale_products, name='product-sale'),
    path('products/slug/<slug:slug>/', product_by_slug, name='product-by-slug'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/reviews/', product_reviews, name='product-reviews'),

    # Category endpoints
    path('categories/', category_list_create, name='category-list-create'),
    path('categories/tree/', category_tree, name='category-tree'),
    path('categories/slug/<slug:slug>/', category_by_slug, name='category-by-slug'),
    path('categories/<int:pk>/', category_detail, name='category-detail'),
    path('categories/<int:pk>/products/', category_products, name='category-products'),
    path('categories/<int:pk>/order/', category_order, name='category-order'),
]
