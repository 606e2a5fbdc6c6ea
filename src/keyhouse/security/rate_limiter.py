"""In-memory token-bucket rate limiter for the OAuth endpoints.

Pre-configured tiers:
  - authorize:  1 req/s, burst 10  (``/oauth/authorize``, per client IP)
  - token:      5 req/s, burst 20  (token, revoke, introspect, per client IP)

Buckets are guarded by a lock because sync endpoints run in a thread pool.
"""

from __future__ import annotations

import math
import threading
import time

__all__ = [
    "RateLimiter",
    "RateLimitInfo",
    "authorize_limiter",
    "token_limiter",
]

# Buckets idle this long are dropped on the next sweep.
_STALE_AFTER = 3600.0


class _Bucket:
    """A single token bucket for one client."""

    __slots__ = ("tokens", "last_refill")

    def __init__(self, capacity: float, now: float):
        self.tokens: float = capacity
        self.last_refill: float = now


class RateLimitInfo:
    """Rate limit state returned by ``check()``."""

    __slots__ = ("allowed", "limit", "remaining", "reset_after")

    def __init__(self, allowed: bool, limit: int, remaining: int, reset_after: float):
        self.allowed = allowed
        self.limit = limit
        self.remaining = remaining
        self.reset_after = reset_after

    def headers(self) -> dict[str, str]:
        """Return rate-limit response headers (RFC 6585 style)."""
        h: dict[str, str] = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
        }
        if not self.allowed:
            h["Retry-After"] = str(math.ceil(self.reset_after))
        return h


class RateLimiter:
    """Token-bucket rate limiter keyed by client IP.

    Parameters
    ----------
    rate : float
        Tokens added per second.
    capacity : int
        Maximum burst size (bucket capacity).
    """

    def __init__(self, rate: float, capacity: int, cleanup_every: int = 1000):
        self.rate = rate
        self.capacity = capacity
        # Stale buckets are evicted every ``cleanup_every`` checks.
        self.cleanup_every = cleanup_every
        self._buckets: dict[str, _Bucket] = {}
        self._checks = 0
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Return True if the request is allowed, consuming one token."""
        return self.check(key).allowed

    def check(self, key: str) -> RateLimitInfo:
        now = time.monotonic()
        with self._lock:
            self._checks += 1
            if self._checks % self.cleanup_every == 0:
                self._evict(now, _STALE_AFTER)

            bucket = self._buckets.setdefault(key, _Bucket(self.capacity, now))

            elapsed = now - bucket.last_refill
            bucket.tokens = min(self.capacity, bucket.tokens + elapsed * self.rate)
            bucket.last_refill = now

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return RateLimitInfo(True, self.capacity, int(bucket.tokens), 0.0)

            reset_after = (1.0 - bucket.tokens) / self.rate if self.rate > 0 else 1.0
            return RateLimitInfo(False, self.capacity, 0, reset_after)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def cleanup(self, max_age: float = _STALE_AFTER) -> int:
        """Remove stale entries older than *max_age* seconds. Returns count removed."""
        with self._lock:
            return self._evict(time.monotonic(), max_age)

    def _evict(self, now: float, max_age: float) -> int:
        # Lock held.
        stale = [k for k, b in self._buckets.items() if now - b.last_refill > max_age]
        for k in stale:
            del self._buckets[k]
        return len(stale)


authorize_limiter = RateLimiter(rate=1.0, capacity=10)
token_limiter = RateLimiter(rate=5.0, capacity=20)
