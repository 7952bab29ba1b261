"""
Caching utilities for expensive analytics queries
Uses Redis (django-redis) when configured, the local memory cache otherwise
"""
from django.core.cache import cache
from django.db import transaction
from functools import wraps
import hashlib
import logging
import threading

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

# Cache TTLs (in seconds)
DASHBOARD_CACHE_TTL = 300  # 5 minutes
ANALYTICS_CACHE_TTL = 300  # 5 minutes

# Bumping a namespace version orphans every key built under the old version,
# which works on every cache backend (no key scanning needed)
VERSION_KEY_TEMPLATE = "cache_version:{namespace}"


def get_namespace_version(namespace):
    version = cache.get(VERSION_KEY_TEMPLATE.format(namespace=namespace))
    if version is None:
        version = 1
        cache.add(VERSION_KEY_TEMPLATE.format(namespace=namespace), version, None)
    return version


def bump_namespace_version(namespace):
    key = VERSION_KEY_TEMPLATE.format(namespace=namespace)
    try:
        cache.incr(key)
    except ValueError:
        # Key missing or evicted
        cache.set(key, 2, None)
    logger.debug(f"Invalidated cache namespace: {namespace}")


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query", namespace="analytics"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=300, key_prefix="dashboard")
        def get_dashboard_data(period):
            # expensive query here
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            version = get_namespace_version(namespace)
            cache_key = make_cache_key(f"{namespace}:v{version}:{key_prefix}", *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def invalidate_analytics_cache():
    """Invalidate every cached analytics result"""
    try:
        bump_namespace_version("analytics")
    except Exception as e:
        logger.warning(f"Could not invalidate analytics cache: {str(e)}")


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def set_suspended(value):
    _thread_locals.suspended = value


def invalidate_analytics_cache_on_commit():
    """
    Invalidate the analytics cache once the current transaction commits.

    Runs immediately outside a transaction. Readers inside the transaction
    would otherwise re-cache data that is not committed yet.
    """
    if is_suspended():
        return
    transaction.on_commit(invalidate_analytics_cache)
