from rest_framework import serializers

from delta_fashion.core.serializers import UserBriefSerializer, phone_validator
from delta_fashion.core.storage import get_image_url
from .models import Order, OrderItem

MAX_ORDER_ITEMS = 50


class OrderItemSerializer(serializers.ModelSerializer):
    image_url = serializers.SerializerMethodField()
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'name', 'price', 'quantity', 'size', 'color', 'image',
                  'image_url', 'sku', 'line_total']

    def get_image_url(self, obj):
        return get_image_url(obj.image)


class OrderListSerializer(serializers.ModelSerializer):
    status_label = serializers.CharField(read_only=True)
    total_items = serializers.SerializerMethodField()
    customer_email = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'order_status', 'status_label', 'payment_method',
                  'payment_status', 'total', 'currency', 'total_items', 'customer_email', 'created_at']

    def get_total_items(self, obj):
        # Sum in Python so prefetched items are reused
        return sum(item.quantity for item in obj.items.all())

    def get_customer_email(self, obj):
        return obj.contact_email


class OrderSerializer(serializers.ModelSerializer):
    user = UserBriefSerializer(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    status_label = serializers.CharField(read_only=True)
    total_items = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'user', 'guest_email', 'items', 'total_items',
                  'shipping_address', 'billing_address', 'payment_method', 'payment_status',
                  'order_status', 'status_label', 'subtotal', 'shipping_cost', 'discount', 'tax',
                  'total', 'currency', 'customer_notes', 'admin_notes', 'tracking_number',
                  'estimated_delivery', 'delivered_at', 'cancelled_at', 'cancelled_by',
                  'cancellation_reason', 'refund_amount', 'refund_reason', 'is_gift',
                  'gift_message', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_total_items(self, obj):
        return sum(item.quantity for item in obj.items.all())


class OrderAddressSerializer(serializers.Serializer):
    first_name = serializers.CharField(min_length=1, max_length=50)
    last_name = serializers.CharField(min_length=1, max_length=50)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20, validators=[phone_validator])
    street = serializers.CharField(min_length=3, max_length=200)
    city = serializers.CharField(max_length=50)
    postal_code = serializers.CharField(max_length=10)
    country = serializers.CharField(max_length=50, required=False, default='Tunisie')
    additional_info = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')


class OrderItemInputSerializer(serializers.Serializer):
    product = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)
    size = serializers.CharField(max_length=10, required=False, allow_blank=True, default='')
    color = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')


class OrderCreateSerializer(serializers.Serializer):
    items = OrderItemInputSerializer(many=True)
    shipping_address = OrderAddressSerializer()
    billing_address = OrderAddressSerializer(required=False)
    payment_method = serializers.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES)
    customer_notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    is_gift = serializers.BooleanField(required=False, default=False)
    gift_message = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('The order must contain at least one item.')
        if len(value) > MAX_ORDER_ITEMS:
            raise serializers.ValidationError(f'An order cannot contain more than {MAX_ORDER_ITEMS} items.')
        return value


class OrderStatusUpdateSerializer(serializers.Serializer):
    order_status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)
    payment_status = serializers.ChoiceField(choices=Order.PAYMENT_STATUS_CHOICES, required=False)
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    admin_notes = serializers.CharField(max_length=500, required=False, allow_blank=True)
    cancellation_reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
