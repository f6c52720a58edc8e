"""In-process fixed-window rate limiting keyed by client IP."""
import math
import time
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter


class RateLimiter:
    """Allow at most the amount in a limit string such as "5/minute" per key."""

    def __init__(self, limit, namespace='portal'):
        self.item = parse(limit)
        self.namespace = namespace
        self._storage = MemoryStorage()
        self._limiter = FixedWindowRateLimiter(self._storage)

    @property
    def max_attempts(self):
        return self.item.amount

    def check(self, key):
        """Record one attempt for key.

        Returns:
            tuple: (allowed, remaining, retry_after_seconds)
        """
        allowed = self._limiter.hit(self.item, self.namespace, key)
        reset_time, remaining = self._limiter.get_window_stats(self.item, self.namespace, key)
        if allowed:
            return True, max(remaining, 0), 0
        return False, 0, max(math.ceil(reset_time - time.time()), 1)

    def reset(self, key=None):
        if key is None:
            self._storage.reset()
        else:
            self._limiter.clear(self.item, self.namespace, key)
