"""
Cache invalidation signals
Automatically invalidate cached reports when orders or products change
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_reports_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations to prevent excessive cache clearing.
    Remember to manually invalidate cache after the block!
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def _invalidate_on_commit(store_id):
    # Runs after commit so the cache is not repopulated with stale data
    transaction.on_commit(lambda: invalidate_reports_cache(store_id))


@receiver([post_save, post_delete], sender='orders.Order')
def invalidate_order_reports(sender, instance, **kwargs):
    """Orders drive revenue, sales and stock figures"""
    if is_suspended():
        return
    _invalidate_on_commit(instance.store_id)


@receiver([post_save, post_delete], sender='orders.OrderItem')
def invalidate_order_item_reports(sender, instance, **kwargs):
    if is_suspended():
        return
    try:
        _invalidate_on_commit(instance.order.store_id)
    except Exception as e:
        # Order already gone during cascade delete
        logger.debug(f"Falling back to global report invalidation: {e}")
        _invalidate_on_commit(None)


@receiver([post_save, post_delete], sender='catalog.Product')
def invalidate_product_reports(sender, instance, **kwargs):
    """Stock count and popular products depend on product rows"""
    if is_suspended():
        return
    _invalidate_on_commit(instance.store_id)
