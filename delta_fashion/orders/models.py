import logging
import random
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import IntegrityError, models, transaction
from django.db.models import Avg, Count, F, Sum
from django.utils import timezone

from delta_fashion.catalog.models import Product

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = 'CMD'
# Attempts made by save() when the generated number hits the unique constraint
ORDER_NUMBER_SAVE_ATTEMPTS = 5
# Attempts made by the pre-checking helper used by scripts and tests
ORDER_NUMBER_LOOKUP_ATTEMPTS = 100

REVENUE_STATUSES = ['confirmed', 'processing', 'shipped', 'delivered']
CLOSED_STATUSES = ['delivered', 'cancelled', 'refunded']


class OrderNumberGenerationError(Exception):
    """No free order number could be found within the attempt budget"""


def generate_order_number(now=None):
    """
    CMD-YYMMDD-NNNNN with a random five digit suffix.

    90,000 suffixes per day; the unique constraint on Order.order_number is what
    actually guarantees uniqueness.
    """
    now = timezone.localtime(now or timezone.now())
    return f"{ORDER_NUMBER_PREFIX}-{now:%y%m%d}-{random.randint(10000, 99999)}"


def is_order_number_conflict(error):
    return 'order_number' in str(error)


class Order(models.Model):
    PAYMENT_METHOD_CHOICES = [
        ('cash_on_delivery', 'Cash on delivery'),
        ('bank_transfer', 'Bank transfer'),
        ('paypal', 'PayPal'),
        ('stripe', 'Stripe'),
    ]
    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('confirmed', 'Confirmed'),
        ('processing', 'Processing'),
        ('shipped', 'Shipped'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
        ('refunded', 'Refunded'),
    ]
    CANCELLED_BY_CHOICES = [
        ('customer', 'Customer'),
        ('admin', 'Admin'),
    ]
    # Labels shown to customers
    STATUS_LABELS = {
        'pending': 'En attente',
        'confirmed': 'Confirmée',
        'processing': 'En préparation',
        'shipped': 'Expédiée',
        'delivered': 'Livrée',
        'cancelled': 'Annulée',
        'refunded': 'Remboursée',
    }

    order_number = models.CharField(max_length=20, unique=True, blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders'
    )
    guest_email = models.EmailField(blank=True, default='')
    shipping_address = models.JSONField(default=dict)
    billing_address = models.JSONField(default=dict, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending')
    order_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    shipping_cost = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    tax = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    total = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    currency = models.CharField(max_length=3, default='TND')
    customer_notes = models.TextField(max_length=500, blank=True, default='')
    admin_notes = models.TextField(max_length=500, blank=True, default='')
    tracking_number = models.CharField(max_length=100, blank=True, default='')
    estimated_delivery = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.CharField(max_length=10, choices=CANCELLED_BY_CHOICES, blank=True, default='')
    cancellation_reason = models.TextField(max_length=500, blank=True, default='')
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    refund_reason = models.TextField(max_length=500, blank=True, default='')
    is_gift = models.BooleanField(default=False)
    gift_message = models.TextField(max_length=200, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='order_user_created_idx'),
            models.Index(fields=['order_status'], name='order_status_idx'),
            models.Index(fields=['payment_status'], name='order_pay_status_idx'),
            models.Index(fields=['guest_email'], name='order_guest_email_idx'),
            models.Index(fields=['-created_at'], name='order_created_idx'),
        ]

    def __str__(self):
        return self.order_number

    def clean(self):
        if not self.user_id and not self.guest_email:
            raise ValidationError('An order needs either a user or a guest email.')

    def save(self, *args, **kwargs):
        """
        Save the order, assigning an order number to new orders.

        The generated number is not looked up first: the insert is attempted and
        a unique violation on order_number triggers a fresh number, up to
        ORDER_NUMBER_SAVE_ATTEMPTS times. A number supplied by the caller is
        kept as is and its conflicts propagate.
        """
        self.clean()
        if self.guest_email:
            self.guest_email = self.guest_email.lower()

        if self.pk or self.order_number:
            return super().save(*args, **kwargs)

        for attempt in range(1, ORDER_NUMBER_SAVE_ATTEMPTS + 1):
            self.order_number = generate_order_number()
            try:
                with transaction.atomic():
                    super().save(*args, **kwargs)
                return
            except IntegrityError as e:
                if not is_order_number_conflict(e):
                    self.order_number = ''
                    raise
                logger.info(f"Order number {self.order_number} already taken (attempt {attempt}/{ORDER_NUMBER_SAVE_ATTEMPTS}), regenerating")
                # The failed insert may have set the primary key on some backends
                self.pk = None

        self.order_number = ''
        logger.error(f"Could not allocate an order number after {ORDER_NUMBER_SAVE_ATTEMPTS} attempts")
        raise OrderNumberGenerationError(
            f'Unable to generate a unique order number after {ORDER_NUMBER_SAVE_ATTEMPTS} attempts'
        )

    @classmethod
    def generate_unique_order_number(cls):
        """Generate a number that is not used yet, checking the table on each attempt"""
        for _ in range(ORDER_NUMBER_LOOKUP_ATTEMPTS):
            order_number = generate_order_number()
            if not cls.objects.filter(order_number=order_number).exists():
                return order_number
        raise OrderNumberGenerationError(
            f'Unable to generate a unique order number after {ORDER_NUMBER_LOOKUP_ATTEMPTS} attempts'
        )

    @property
    def contact_email(self):
        if self.user_id:
            return self.user.email
        return self.guest_email

    @property
    def status_label(self):
        return self.STATUS_LABELS.get(self.order_status, self.order_status)

    @property
    def total_items(self):
        return sum(item.quantity for item in self.items.all())

    @property
    def is_closed(self):
        return self.order_status in CLOSED_STATUSES

    def calculate_totals(self, items=None):
        """subtotal = sum(price * quantity); total = subtotal + shipping + tax - discount"""
        items = items if items is not None else self.items.all()
        self.subtotal = sum((item.price * item.quantity for item in items), Decimal('0.00'))
        self.total = max(Decimal('0.00'), self.subtotal + self.shipping_cost + self.tax - self.discount)
        return self.total

    def cancel(self, reason='', by='customer'):
        self.order_status = 'cancelled'
        self.cancelled_at = timezone.now()
        self.cancelled_by = by
        self.cancellation_reason = reason or ''
        self.save()

    def mark_as_delivered(self):
        self.order_status = 'delivered'
        self.delivered_at = timezone.now()
        if self.payment_method == 'cash_on_delivery':
            self.payment_status = 'paid'
        self.save()

    def restore_stock(self):
        """Give the ordered quantities back to the products"""
        for item in self.items.select_related('product'):
            if item.product is None:
                continue
            item.product.update_stock(item.size, item.color, item.quantity)
            Product.objects.filter(pk=item.product_id, sold_count__gte=item.quantity).update(
                sold_count=F('sold_count') - item.quantity
            )

    @classmethod
    def stats(cls, queryset=None):
        """Order count, revenue and average order value over revenue statuses"""
        queryset = cls.objects.all() if queryset is None else queryset
        result = queryset.filter(order_status__in=REVENUE_STATUSES).aggregate(
            total_orders=Count('id'),
            total_revenue=Sum('total'),
            average_order_value=Avg('total'),
        )
        return {
            'total_orders': result['total_orders'] or 0,
            'total_revenue': float(result['total_revenue'] or 0),
            'average_order_value': float(result['average_order_value'] or 0),
        }


class OrderItem(models.Model):
    """Line item. Name, price and image are copied so the order survives catalogue edits."""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(
        'catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items'
    )
    name = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    size = models.CharField(max_length=10, blank=True, default='')
    color = models.CharField(max_length=50, blank=True, default='')
    image = models.CharField(max_length=500, blank=True, default='')
    sku = models.CharField(max_length=100, blank=True, default='')

    class Meta:
        db_table = 'order_items'
        ordering = ['id']

    def __str__(self):
        return f"{self.name} x {self.quantity}"

    @property
    def line_total(self):
        return self.price * self.quantity
