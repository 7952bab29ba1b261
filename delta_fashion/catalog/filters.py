import django_filters
from django.db.models import Q, TextField
from django.db.models.functions import Cast
from rest_framework.exceptions import ValidationError

from .models import Product

SORT_ORDERING = {
    'price_asc': ['price', '-created_at'],
    'price_desc': ['-price', '-created_at'],
    'newest': ['-created_at'],
    'oldest': ['created_at'],
    'rating': ['-rating_average', '-rating_count'],
    'popular': ['-sold_count', '-view_count'],
    'name': ['name'],
}

SORT_CHOICES = [(key, key) for key in SORT_ORDERING]


def is_true(value):
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes')
    return bool(value)


class ProductFilter(django_filters.FilterSet):
    """Storefront product filters and sorting"""

    category = django_filters.NumberFilter(method='filter_category', label='Category')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')
    search = django_filters.CharFilter(method='filter_search', label='Search')
    featured = django_filters.CharFilter(method='filter_featured', label='Featured')
    on_sale = django_filters.CharFilter(method='filter_on_sale', label='On sale')
    in_stock = django_filters.CharFilter(method='filter_in_stock', label='In stock')
    sort = django_filters.ChoiceFilter(choices=SORT_CHOICES, method='filter_sort', label='Sort')

    class Meta:
        model = Product
        fields = ['category', 'min_price', 'max_price', 'search', 'featured', 'on_sale', 'in_stock', 'sort']

    @property
    def qs(self):
        queryset = super().qs
        # Default ordering when no sort was requested
        if not self.form.cleaned_data.get('sort'):
            queryset = queryset.order_by(*SORT_ORDERING['newest'])
        return queryset

    def filter_category(self, queryset, name, value):
        """Products filed under the category either as main or sub category"""
        if value is None:
            return queryset
        return queryset.filter(Q(category_id=value) | Q(sub_category_id=value))

    def filter_search(self, queryset, name, value):
        """Case-insensitive match on name, description, brand and tags"""
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.annotate(tags_text=Cast('tags', TextField())).filter(
            Q(name__icontains=search) |
            Q(description__icontains=search) |
            Q(brand__icontains=search) |
            Q(tags_text__icontains=search)
        )

    def filter_featured(self, queryset, name, value):
        if value in (None, ''):
            return queryset
        return queryset.filter(is_featured=is_true(value))

    def filter_on_sale(self, queryset, name, value):
        if value in (None, '') or not is_true(value):
            return queryset
        return queryset.filter(Q(discount__gt=0) | Q(is_on_sale=True))

    def filter_in_stock(self, queryset, name, value):
        if value in (None, '') or not is_true(value):
            return queryset
        return queryset.filter(total_stock__gt=0)

    def filter_sort(self, queryset, name, value):
        return queryset.order_by(*SORT_ORDERING.get(value, SORT_ORDERING['newest']))


def filter_products(params, queryset):
    """
    Apply ProductFilter to a queryset.

    Raises a DRF ValidationError (400) when a filter value is invalid,
    e.g. a non numeric price or an unknown sort key.
    """
    filterset = ProductFilter(params, queryset=queryset)
    if not filterset.is_valid():
        raise ValidationError(filterset.errors)
    return filterset.qs
