"""
Admin analytics

Every aggregate is computed by a cached function; the cache namespace is
bumped after commit by the model signals in core.cache_signals and by the
stock and rating updates on Product. Product view counts are left to the TTL.
"""
import logging
import time
from datetime import timedelta

from django.core.cache import cache
from django.db import connection, DatabaseError
from django.db.models import Avg, Count, DecimalField, ExpressionWrapper, F, Q, Sum
from django.db.models.functions import TruncDay, TruncMonth, TruncWeek, TruncYear
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from delta_fashion.banners.models import Banner
from delta_fashion.catalog.models import Category, Product
from delta_fashion.core.cache_utils import cached_query, ANALYTICS_CACHE_TTL, DASHBOARD_CACHE_TTL
from delta_fashion.core.models import User, AdminRequest, AuditLog
from delta_fashion.core.permissions import IsAdminRole
from delta_fashion.core.utils import parse_date
from delta_fashion.orders.models import Order, OrderItem, REVENUE_STATUSES

logger = logging.getLogger('delta_fashion.reports')

PROCESS_STARTED_AT = time.time()

GROUP_BY_FUNCTIONS = {
    'day': TruncDay,
    'week': TruncWeek,
    'month': TruncMonth,
    'year': TruncYear,
}

LOW_STOCK_THRESHOLD = 10


def as_float(value):
    return float(value or 0)


def line_total():
    return ExpressionWrapper(F('price') * F('quantity'), output_field=DecimalField(max_digits=14, decimal_places=2))


def product_rows(queryset, limit=10):
    return [
        {
            'id': row['id'],
            'name': row['name'],
            'slug': row['slug'],
            'price': as_float(row['price']),
            'total_stock': row['total_stock'],
            'view_count': row['view_count'],
            'sold_count': row['sold_count'],
            'created_at': row['created_at'].isoformat(),
        }
        for row in queryset.values(
            'id', 'name', 'slug', 'price', 'total_stock', 'view_count', 'sold_count', 'created_at'
        )[:limit]
    ]


def customer_rows(queryset):
    return [
        {
            'id': user.pk,
            'email': user.email,
            'full_name': user.full_name,
            'orders_count': user.orders_count,
            'total_spent': as_float(user.total_spent),
        }
        for user in queryset
    ]


def top_customers(limit):
    return customer_rows(
        User.objects.filter(orders__order_status__in=REVENUE_STATUSES)
        .annotate(total_spent=Sum('orders__total'), orders_count=Count('orders'))
        .order_by('-total_spent')[:limit]
    )


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix="dashboard")
def get_dashboard_data():
    now = timezone.now()
    customers = User.objects.filter(role=User.ROLE_USER)
    orders = Order.objects.all()
    revenue_orders = orders.filter(order_status__in=REVENUE_STATUSES)

    by_status = {
        row['order_status']: row['count']
        for row in orders.values('order_status').annotate(count=Count('id'))
    }

    year_start = (now - timedelta(days=365)).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    monthly = (
        orders.filter(created_at__gte=year_start)
        .annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(
            orders=Count('id'),
            revenue=Sum('total', filter=Q(order_status__in=REVENUE_STATUSES)),
        )
        .order_by('month')
    )

    top_products = (
        OrderItem.objects.exclude(order__order_status__in=['cancelled', 'refunded'])
        .filter(product__isnull=False)
        .values('product_id', 'name')
        .annotate(quantity=Sum('quantity'), revenue=Sum(line_total()))
        .order_by('-quantity')[:10]
    )

    top_categories = (
        Category.objects.annotate(product_count=Count('products', distinct=True))
        .order_by('-product_count', 'name')[:10]
    )

    return {
        'totals': {
            'users': customers.count(),
            'active_users': customers.filter(is_active=True).count(),
            'products': Product.objects.count(),
            'active_products': Product.objects.filter(is_active=True).count(),
            'categories': Category.objects.count(),
            'orders': orders.count(),
            'pending_orders': by_status.get('pending', 0),
            'revenue': as_float(revenue_orders.aggregate(total=Sum('total'))['total']),
        },
        'orders_by_status': {key: by_status.get(key, 0) for key, _ in Order.STATUS_CHOICES},
        'monthly': [
            {
                'month': row['month'].strftime('%Y-%m'),
                'orders': row['orders'],
                'revenue': as_float(row['revenue']),
            }
            for row in monthly
        ],
        'top_products': [
            {
                'product_id': row['product_id'],
                'name': row['name'],
                'quantity': row['quantity'],
                'revenue': as_float(row['revenue']),
            }
            for row in top_products
        ],
        'top_categories': [
            {'id': category.pk, 'name': category.name, 'product_count': category.product_count}
            for category in top_categories
        ],
        'top_customers': top_customers(10),
        'generated_at': now.isoformat(),
    }


@cached_query(cache_ttl=ANALYTICS_CACHE_TTL, key_prefix="sales")
def get_sales_analytics(start_date, end_date, group_by):
    trunc = GROUP_BY_FUNCTIONS[group_by]
    queryset = Order.objects.filter(
        created_at__date__gte=start_date,
        created_at__date__lte=end_date,
        order_status__in=REVENUE_STATUSES,
    )
    series = (
        queryset.annotate(period=trunc('created_at'))
        .values('period')
        .annotate(orders=Count('id'), revenue=Sum('total'), average_order_value=Avg('total'))
        .order_by('period')
    )
    return {
        'start_date': start_date.isoformat(),
        'end_date': end_date.isoformat(),
        'group_by': group_by,
        'series': [
            {
                'period': row['period'].date().isoformat() if hasattr(row['period'], 'date') else str(row['period']),
                'orders': row['orders'],
                'revenue': as_float(row['revenue']),
                'average_order_value': round(as_float(row['average_order_value']), 2),
            }
            for row in series
        ],
        'totals': Order.stats(queryset),
    }


@cached_query(cache_ttl=ANALYTICS_CACHE_TTL, key_prefix="products")
def get_product_analytics():
    products = Product.objects.all()
    stats = products.aggregate(
        total=Count('id'),
        active=Count('id', filter=Q(is_active=True)),
        featured=Count('id', filter=Q(is_featured=True)),
        on_sale=Count('id', filter=Q(discount__gt=0) | Q(is_on_sale=True)),
        out_of_stock=Count('id', filter=Q(total_stock=0)),
        average_price=Avg('price'),
        total_views=Sum('view_count'),
        total_sold=Sum('sold_count'),
    )
    stats['average_price'] = round(as_float(stats['average_price']), 2)
    stats['total_views'] = stats['total_views'] or 0
    stats['total_sold'] = stats['total_sold'] or 0

    return {
        'stats': stats,
        'low_stock': product_rows(
            products.filter(total_stock__gt=0, total_stock__lte=LOW_STOCK_THRESHOLD).order_by('total_stock'), 20
        ),
        'out_of_stock': product_rows(products.filter(total_stock=0).order_by('-updated_at'), 20),
        'most_viewed': product_rows(products.order_by('-view_count'), 10),
        'best_selling': product_rows(products.order_by('-sold_count'), 10),
        'recent': product_rows(products.order_by('-created_at'), 10),
    }


@cached_query(cache_ttl=ANALYTICS_CACHE_TTL, key_prefix="customers")
def get_customer_analytics():
    now = timezone.now()
    customers = User.objects.filter(role=User.ROLE_USER)
    month_ago = now - timedelta(days=30)
    inactive_cutoff = now - timedelta(days=90)

    new_customers = customers.filter(created_at__gte=month_ago).order_by('-created_at')
    inactive = (
        customers.filter(is_active=True, created_at__lt=inactive_cutoff)
        .exclude(orders__created_at__gte=inactive_cutoff)
        .order_by('created_at')
    )

    return {
        'stats': {
            'total': customers.count(),
            'active': customers.filter(is_active=True).count(),
            'new_last_30_days': new_customers.count(),
            'inactive_last_90_days': inactive.count(),
        },
        'top_customers': top_customers(20),
        'new_customers': [
            {'id': user.pk, 'email': user.email, 'full_name': user.full_name, 'created_at': user.created_at.isoformat()}
            for user in new_customers[:20]
        ],
        'inactive_customers': [
            {'id': user.pk, 'email': user.email, 'full_name': user.full_name, 'created_at': user.created_at.isoformat()}
            for user in inactive[:20]
        ],
    }


def entity_counts():
    return {
        'users': User.objects.count(),
        'categories': Category.objects.count(),
        'products': Product.objects.count(),
        'orders': Order.objects.count(),
        'order_items': OrderItem.objects.count(),
        'banners': Banner.objects.count(),
        'admin_requests': AdminRequest.objects.count(),
        'audit_logs': AuditLog.objects.count(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def dashboard(request):
    """Admin dashboard KPIs"""
    return Response(get_dashboard_data())


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def sales_analytics(request):
    """Revenue series grouped by day, week, month or year"""
    group_by = request.query_params.get('group_by', 'day')
    if group_by not in GROUP_BY_FUNCTIONS:
        raise ValidationError({'group_by': [f"Must be one of: {', '.join(GROUP_BY_FUNCTIONS)}."]})

    end_date = parse_date(request.query_params.get('end_date'), 'end_date') or timezone.localdate()
    start_date = parse_date(request.query_params.get('start_date'), 'start_date') or end_date - timedelta(days=30)
    if start_date > end_date:
        raise ValidationError({'start_date': ['Start date must be before the end date.']})

    return Response(get_sales_analytics(start_date, end_date, group_by))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def product_analytics(request):
    return Response(get_product_analytics())


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def customer_analytics(request):
    return Response(get_customer_analytics())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def backup(request):
    """Snapshot of row counts; data export is handled outside the API"""
    counts = entity_counts()
    logger.info(f"Backup snapshot requested by {request.user.email}: {counts}")
    return Response({
        'message': 'Backup snapshot created',
        'counts': counts,
        'timestamp': timezone.now().isoformat(),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def system_health(request):
    """Database and cache status plus process uptime"""
    health = {
        'status': 'OK',
        'uptime_seconds': int(time.time() - PROCESS_STARTED_AT),
        'timestamp': timezone.now().isoformat(),
    }

    try:
        connection.ensure_connection()
        health['database'] = {'status': 'connected', 'vendor': connection.vendor}
        health['counts'] = entity_counts()
    except DatabaseError as e:
        logger.error(f"Health check database failure: {str(e)}")
        health['status'] = 'DEGRADED'
        health['database'] = {'status': 'error', 'error': str(e)}

    try:
        cache.set('health_check', 'ok', 10)
        health['cache'] = {'status': 'connected' if cache.get('health_check') == 'ok' else 'unavailable'}
    except Exception as e:
        logger.warning(f"Health check cache failure: {str(e)}")
        health['cache'] = {'status': 'unavailable'}

    response_status = status.HTTP_200_OK if health['status'] == 'OK' else status.HTTP_503_SERVICE_UNAVAILABLE
    return Response(health, status=response_status)
