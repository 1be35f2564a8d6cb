"""
Caching helpers for public listings.
Keys carry a prefix so a whole family can be dropped with ``invalidate_cache_pattern``.
"""
import hashlib
import logging

from django.core.cache import cache

logger = logging.getLogger(__name__)

PUBLIC_OFFERS_CACHE_TTL = 120  # 2 minutes
RECOMMENDED_OFFERS_CACHE_TTL = 300  # 5 minutes


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def get_or_set(key, producer, ttl):
    cached = cache.get(key)
    if cached is not None:
        logger.debug(f"Cache HIT: {key}")
        return cached
    logger.debug(f"Cache MISS: {key}")
    value = producer()
    cache.set(key, value, ttl)
    return value


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys containing ``pattern``.
    Redis (django-redis) deletes matching keys, other backends are cleared.
    """
    try:
        if hasattr(cache, 'delete_pattern'):
            deleted = cache.delete_pattern(f"*{pattern}*")
            logger.info(f"Cache invalidation for pattern: {pattern} - Deleted {deleted} keys")
        else:
            cache.clear()
            logger.debug(f"Cache backend has no pattern support, cleared cache for pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")
