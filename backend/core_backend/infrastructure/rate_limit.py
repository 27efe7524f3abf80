"""
Cache-backed sliding window rate limiter.

Hits are counted in fixed buckets one window long. Every hit is an atomic
``cache.add`` plus ``cache.incr`` on the current bucket, so concurrent
requests cannot overwrite each other's counts. The sliding window total is
estimated as the current bucket plus the previous bucket weighted by how
much of it still overlaps the window.

The limiter fails open: if the cache backend raises, the request is allowed
and the error is logged.
"""

import logging
import math
import time

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    def __init__(self, cache, prefix="ratelimit"):
        self.cache = cache
        self.prefix = prefix

    def _bucket_key(self, key, bucket):
        return f"{self.prefix}:{key}:{bucket}"

    @staticmethod
    def _retry_after(current, previous, limit, window_seconds, elapsed):
        # Seconds until one more hit fits, assuming no other hits arrive
        room = limit - 1
        if current > room:
            wait = (window_seconds - elapsed) + window_seconds * (1 - room / current)
        else:
            wait = window_seconds * (1 - (room - current) / previous) - elapsed
        return max(1, math.ceil(wait))

    def is_allowed(self, key, limit, window_seconds):
        """
        Record a hit for ``key`` and report whether it is within ``limit``
        hits per ``window_seconds``. Rejected hits are not counted.

        Returns:
            (allowed, remaining, retry_after) where retry_after is the
            estimated number of seconds until a hit would be allowed again
            (0 when allowed).
        """
        now = time.time()
        bucket = int(now // window_seconds)
        elapsed = now - bucket * window_seconds
        current_key = self._bucket_key(key, bucket)

        try:
            self.cache.add(current_key, 0, timeout=window_seconds * 2)
            current = self.cache.incr(current_key)
            previous = self.cache.get(self._bucket_key(key, bucket - 1)) or 0
        except Exception as e:
            logger.error(f"Rate limiter cache error for {current_key}, allowing request: {e}")
            return True, limit, 0

        estimated = current + previous * (window_seconds - elapsed) / window_seconds
        if estimated <= limit:
            return True, max(0, int(limit - estimated)), 0

        try:
            self.cache.decr(current_key)
        except Exception as e:
            logger.error(f"Rate limiter could not discard rejected hit for {current_key}: {e}")
        return False, 0, self._retry_after(current - 1, previous, limit, window_seconds, elapsed)

    def reset(self, key, window_seconds):
        bucket = int(time.time() // window_seconds)
        try:
            self.cache.delete_many(
                [self._bucket_key(key, bucket), self._bucket_key(key, bucket - 1)]
            )
        except Exception as e:
            logger.error(f"Rate limiter reset failed for {key}: {e}")
