import logging
from collections import defaultdict
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Count, F
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response

from delta_fashion.catalog.models import Product
from delta_fashion.core.authentication import OptionalJWTAuthentication
from delta_fashion.core.emails import send_order_confirmation
from delta_fashion.core.pagination import paginated_response
from delta_fashion.core.permissions import IsAdminRole, is_owner_or_admin
from delta_fashion.core.utils import create_audit_log, parse_date, period_start, PERIOD_DAYS
from .models import Order, OrderItem, OrderNumberGenerationError, CLOSED_STATUSES
from .serializers import (
    OrderSerializer, OrderListSerializer, OrderCreateSerializer,
    OrderStatusUpdateSerializer, OrderCancelSerializer
)

logger = logging.getLogger(__name__)

FORBIDDEN = {'message': 'Access denied.'}


def order_queryset():
    return Order.objects.select_related('user').prefetch_related('items')


def order_response(order, message=None, status_code=status.HTTP_200_OK):
    data = {'order': OrderSerializer(order).data}
    if message:
        data['message'] = message
    return Response(data, status=status_code)


@api_view(['GET', 'POST'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([AllowAny])
def order_list_create(request):
    """List orders (authenticated) or place an order (guests allowed)"""
    if request.method == 'POST':
        return create_order(request)

    if not request.user.is_authenticated:
        return Response(
            {'message': 'Authentication credentials were not provided.'},
            status=status.HTTP_401_UNAUTHORIZED
        )

    queryset = order_queryset()
    if not request.user.is_admin:
        queryset = queryset.filter(user=request.user)

    order_status = request.query_params.get('status')
    if order_status:
        queryset = queryset.filter(order_status=order_status)

    payment_status = request.query_params.get('payment_status')
    if payment_status:
        queryset = queryset.filter(payment_status=payment_status)

    start_date = parse_date(request.query_params.get('start_date'), 'start_date')
    end_date = parse_date(request.query_params.get('end_date'), 'end_date')
    if start_date:
        queryset = queryset.filter(created_at__date__gte=start_date)
    if end_date:
        queryset = queryset.filter(created_at__date__lte=end_date)

    queryset = queryset.order_by('-created_at')
    return paginated_response(request, queryset, OrderListSerializer, default_limit=10, max_limit=50)


def create_order(request):
    """
    Validate the cart against live stock and persist the order.

    Products are locked for the duration of the transaction so two checkouts
    cannot both take the last unit. The order number is assigned by Order.save().
    """
    serializer = OrderCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    user = request.user if request.user.is_authenticated else None

    shipping_address = dict(data['shipping_address'])
    billing_address = dict(data['billing_address']) if data.get('billing_address') else dict(shipping_address)

    try:
        with transaction.atomic():
            product_ids = {item['product'] for item in data['items']}
            products = Product.objects.select_for_update().in_bulk(product_ids)

            requested = defaultdict(int)
            lines = []
            for item in data['items']:
                product = products.get(item['product'])
                if product is None or not product.is_active:
                    raise ValidationError({'items': [f"Product {item['product']} is not available."]})

                variant = product.find_variant(item['size'], item['color'])
                key = (product.pk, variant.pk if variant else None)
                requested[key] += item['quantity']
                available = variant.stock if variant else product.total_stock
                if requested[key] > available:
                    raise ValidationError({'items': [
                        f"Insufficient stock for {product.name}. Available: {available}."
                    ]})

                lines.append(OrderItem(
                    product=product,
                    name=product.name,
                    price=product.final_price,
                    quantity=item['quantity'],
                    size=item['size'],
                    color=item['color'],
                    image=(product.images or [''])[0],
                    sku=product.sku or '',
                ))

            order = Order(
                user=user,
                guest_email='' if user else shipping_address['email'].lower(),
                shipping_address=shipping_address,
                billing_address=billing_address,
                payment_method=data['payment_method'],
                shipping_cost=Decimal(settings.SHIPPING_COST),
                tax=Decimal('0.00'),
                currency=settings.SHOP_CURRENCY,
                customer_notes=data.get('customer_notes', ''),
                is_gift=data.get('is_gift', False),
                gift_message=data.get('gift_message', ''),
            )
            order.calculate_totals(items=lines)
            order.save()

            for line in lines:
                line.order = order
            OrderItem.objects.bulk_create(lines)

            for line in lines:
                line.product.update_stock(line.size, line.color, -line.quantity)
                Product.objects.filter(pk=line.product.pk).update(sold_count=F('sold_count') + line.quantity)

            transaction.on_commit(lambda: send_order_confirmation(order))
    except OrderNumberGenerationError as e:
        logger.error(f"Order creation failed: {str(e)}")
        return Response(
            {'message': 'Could not create the order. Please try again.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    except ValidationError:
        raise
    except Exception as e:
        logger.error(f"Order creation failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error creating order.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    create_audit_log(
        request=request, action='order_create', model_name='Order', object_id=order.pk,
        object_name=order.order_number, changes={'total': str(order.total), 'items': len(lines)}
    )
    logger.info(f"Order {order.order_number} placed by {order.contact_email} ({order.total} {order.currency})")
    return order_response(order_queryset().get(pk=order.pk), 'Order created successfully', status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    order = get_object_or_404(order_queryset(), pk=pk)
    if not is_owner_or_admin(request.user, order.user_id):
        return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)
    return order_response(order)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_by_number(request, order_number):
    order = get_object_or_404(order_queryset(), order_number__iexact=order_number)
    if not is_owner_or_admin(request.user, order.user_id):
        return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)
    return order_response(order)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def guest_order_lookup(request, order_number, email):
    """Order tracking for guests, by order number and checkout email"""
    order = order_queryset().filter(
        order_number__iexact=order_number.strip(),
        guest_email__iexact=email.strip(),
    ).first()
    if order is None:
        return Response({'message': 'Order not found.'}, status=status.HTTP_404_NOT_FOUND)
    return order_response(order)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def order_status_update(request, pk):
    """Move an order through its lifecycle"""
    serializer = OrderStatusUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    get_object_or_404(Order, pk=pk)

    try:
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=pk)
            previous_status = order.order_status
            new_status = data['order_status']

            # Stock went back on the shelf at cancellation; a cancelled order stays cancelled
            if previous_status == 'cancelled' and new_status != 'cancelled':
                return Response(
                    {'message': 'Cancelled orders cannot be reopened.'},
                    status=status.HTTP_400_BAD_REQUEST
                )

            if 'payment_status' in data:
                order.payment_status = data['payment_status']
            if data.get('tracking_number'):
                order.tracking_number = data['tracking_number']
            if data.get('admin_notes'):
                order.admin_notes = data['admin_notes']

            if new_status == 'delivered':
                order.mark_as_delivered()
            elif new_status == 'cancelled':
                if previous_status != 'cancelled':
                    order.restore_stock()
                order.cancel(data.get('cancellation_reason') or 'Cancelled by the administrator', by='admin')
            else:
                order.order_status = new_status
                order.save()
    except ValidationError:
        raise
    except Exception as e:
        logger.error(f"Status update of order #{pk} failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error updating order status.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    create_audit_log(
        request=request, action='order_status', model_name='Order', object_id=order.pk,
        object_name=order.order_number,
        changes={'order_status': {'from': previous_status, 'to': order.order_status},
                 'payment_status': order.payment_status}
    )
    logger.info(f"Order {order.order_number}: {previous_status} -> {order.order_status} by {request.user.email}")
    return order_response(order_queryset().get(pk=order.pk), 'Order status updated successfully')


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def order_cancel(request, pk):
    """Cancel an open order and put its items back in stock"""
    serializer = OrderCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    get_object_or_404(Order, pk=pk)

    try:
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=pk)
            if not is_owner_or_admin(request.user, order.user_id):
                return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)
            if order.order_status in CLOSED_STATUSES:
                return Response(
                    {'message': 'This order can no longer be cancelled.'},
                    status=status.HTTP_400_BAD_REQUEST
                )

            by = 'admin' if request.user.is_admin else 'customer'
            reason = serializer.validated_data.get('reason') or 'Cancelled by the customer'
            order.restore_stock()
            order.cancel(reason, by=by)
    except ValidationError:
        raise
    except Exception as e:
        logger.error(f"Cancellation of order #{pk} failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error cancelling order.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    create_audit_log(
        request=request, action='order_cancel', model_name='Order', object_id=order.pk,
        object_name=order.order_number, changes={'reason': order.cancellation_reason, 'by': by}
    )
    return order_response(order_queryset().get(pk=order.pk), 'Order cancelled successfully')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def order_stats(request):
    """Order totals and status breakdown for a period"""
    period = request.query_params.get('period', '30d')
    if period not in PERIOD_DAYS:
        raise ValidationError({'period': [f"Period must be one of: {', '.join(PERIOD_DAYS)}."]})

    queryset = Order.objects.filter(created_at__gte=period_start(period))
    by_status = {
        row['order_status']: row['count']
        for row in queryset.values('order_status').annotate(count=Count('id'))
    }
    by_payment_status = {
        row['payment_status']: row['count']
        for row in queryset.values('payment_status').annotate(count=Count('id'))
    }
    return Response({
        'period': period,
        **Order.stats(queryset),
        'orders_count': queryset.count(),
        'status_counts': {key: by_status.get(key, 0) for key, _ in Order.STATUS_CHOICES},
        'payment_status_counts': {key: by_payment_status.get(key, 0) for key, _ in Order.PAYMENT_STATUS_CHOICES},
    })
