"""
Cache invalidation signals
Automatically invalidate cached analytics when shop data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
from django.contrib.auth import get_user_model
import logging
from contextlib import contextmanager

from .cache_utils import invalidate_analytics_cache, invalidate_analytics_cache_on_commit, set_suspended

logger = logging.getLogger(__name__)


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations (seeding) to prevent excessive cache clearing.
    The analytics cache is invalidated once when the block exits.
    """
    try:
        set_suspended(True)
        yield
    finally:
        set_suspended(False)
        invalidate_analytics_cache()


def _invalidate(sender, **kwargs):
    invalidate_analytics_cache_on_commit()


# Models that feed the admin dashboard and analytics
User = get_user_model()


@receiver([post_save, post_delete], sender=User)
def invalidate_on_user_change(sender, **kwargs):
    _invalidate(sender, **kwargs)


@receiver([post_save, post_delete], sender='catalog.Category')
def invalidate_on_category_change(sender, **kwargs):
    _invalidate(sender, **kwargs)


@receiver([post_save, post_delete], sender='catalog.Product')
def invalidate_on_product_change(sender, **kwargs):
    _invalidate(sender, **kwargs)


@receiver([post_save, post_delete], sender='orders.Order')
def invalidate_on_order_change(sender, **kwargs):
    _invalidate(sender, **kwargs)


@receiver([post_save, post_delete], sender='orders.OrderItem')
def invalidate_on_order_item_change(sender, **kwargs):
    _invalidate(sender, **kwargs)
