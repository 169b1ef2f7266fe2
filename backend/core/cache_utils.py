"""
Caching utilities for expensive report queries
Uses Redis (django-redis) when configured, local memory otherwise
"""
from django.conf import settings
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
DASHBOARD_CACHE_TTL = getattr(settings, 'DASHBOARD_CACHE_TTL', 300)
REPORTS_CACHE_TTL = getattr(settings, 'REPORTS_CACHE_TTL', 600)


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def report_prefix(store_id):
    return f"reports:{store_id}"


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Falls back to clearing the whole cache on backends without pattern support
    """
    try:
        if hasattr(cache, 'delete_pattern'):
            deleted = cache.delete_pattern(f"*{pattern}*")
            logger.info(f"Invalidated {deleted} cache keys matching pattern: {pattern}")
        else:
            cache.clear()
            logger.info(f"Cleared cache for pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def get_cached_report(name, store_id, *args):
    """
    Get a cached report for a store
    Returns tuple: (cached_data, cache_key)
    """
    cache_key = make_cache_key(f"{report_prefix(store_id)}:{name}", *args)
    return cache.get(cache_key), cache_key


def cache_report(cache_key, data, ttl=REPORTS_CACHE_TTL):
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached report: {cache_key}")


def invalidate_reports_cache(store_id=None):
    """Invalidate cached reports of one store, or of every store"""
    if store_id is None:
        invalidate_cache_pattern("reports:")
    else:
        invalidate_cache_pattern(f"{report_prefix(store_id)}:")
