"""
Order abuse guards.

Two cache-backed checks run before an order is written:

* the duplicate-order guard atomically claims a per-actor slot, rejecting
  a second order within ``DUPLICATE_ORDER_WINDOW_SECONDS``. A failed
  order releases its slot;
* the per-actor rate limit caps how many orders an actor may place in a
  sliding window (staff and customers have separate limits).

Both fail open when the cache is unavailable.
"""

import logging
import math
import time

from django.conf import settings
from django.core.cache import cache

from core_backend.exceptions import RateLimitError
from core_backend.infrastructure.rate_limit import SlidingWindowRateLimiter
from .exceptions import DuplicateOrderError

logger = logging.getLogger(__name__)

DUPLICATE_ORDER_PREFIX = "order_duplicate"

order_rate_limiter = SlidingWindowRateLimiter(cache, prefix="order_rate")


def staff_actor_key(staff):
    return f"staff:{staff.pk}"


def customer_actor_key(ip_address, table_code):
    return f"customer:{ip_address or 'unknown'}:{(table_code or '').upper()}"


def _duplicate_cache_key(actor_key):
    return f"{DUPLICATE_ORDER_PREFIX}:{actor_key}"


def claim_order_slot(actor_key):
    """
    Claim the duplicate-order slot for ``actor_key``.

    The claim is a single ``cache.add`` so two concurrent requests cannot
    both pass. Raises DuplicateOrderError when the slot was claimed less
    than ``DUPLICATE_ORDER_WINDOW_SECONDS`` ago. Returns False when the
    guard is disabled or the cache is unavailable.
    """
    window = settings.DUPLICATE_ORDER_WINDOW_SECONDS
    if window <= 0:
        return False

    key = _duplicate_cache_key(actor_key)
    now = time.time()
    try:
        if cache.add(key, now, timeout=window):
            return True
        claimed_at = cache.get(key)
    except Exception as e:
        logger.error(f"Duplicate order check failed for {actor_key}, allowing order: {e}")
        return False

    elapsed = now - claimed_at if claimed_at is not None else 0
    retry_after = max(1, math.ceil(window - elapsed))
    logger.warning(f"Duplicate order blocked for {actor_key} ({elapsed:.1f}s after previous)")
    raise DuplicateOrderError(retry_after)


def release_order_slot(actor_key):
    """Give the slot back after an order attempt that wrote nothing."""
    try:
        cache.delete(_duplicate_cache_key(actor_key))
    except Exception as e:
        logger.error(f"Could not release order slot for {actor_key}: {e}")


def check_order_rate_limit(actor_key, limit, window_seconds):
    allowed, remaining, retry_after = order_rate_limiter.is_allowed(
        actor_key, limit, window_seconds
    )
    if not allowed:
        logger.warning(f"Order rate limit exceeded for {actor_key}, retry in {retry_after}s")
        raise RateLimitError(
            "Too many orders. Please try again later.",
            retry_after=retry_after,
            code="ORDER_RATE_LIMITED",
        )
    return remaining


def _enforce_guards(key, rate_limit):
    claimed = claim_order_slot(key)
    limit, window = rate_limit
    try:
        check_order_rate_limit(key, limit, window)
    except RateLimitError:
        if claimed:
            release_order_slot(key)
        raise
    return key


def enforce_staff_order_guards(staff):
    """
    Claim the staff member's order slot and apply the staff rate limit.
    Callers release the slot with ``release_order_slot`` if the order fails.
    """
    return _enforce_guards(staff_actor_key(staff), settings.STAFF_ORDER_RATE_LIMIT)


def enforce_customer_order_guards(ip_address, table_code):
    return _enforce_guards(
        customer_actor_key(ip_address, table_code), settings.CUSTOMER_ORDER_RATE_LIMIT
    )
