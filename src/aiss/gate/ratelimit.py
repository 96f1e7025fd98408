"""Fixed-window rate limiting over a shared key/value store.

Window = wall-clock minute, window id = floor(now / 60). The counter key
contains the window id, so every window starts from zero and its counter
expires ``window + grace`` seconds after it was created. The grace period
keeps a counter alive across small clock skew between workers at the window
boundary.

Counting is best effort: check and increment are two store operations, so
concurrent requests may overshoot a limit by a small margin.

Two limiters are wired by RateGovernor:
  - global provider budget  scope "global", gates upstream calls only
  - per-client-IP budget     scope sha256(ip), gates every request
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass

from aiss.cache.store import Clock, KeyValueStore

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
GRACE_SECONDS = 10
GLOBAL_SCOPE = "global"


@dataclass(frozen=True)
class RateDecision:
    """Outcome of a limiter check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Configured limit (0 = unlimited).
        remaining: Requests left in the current window after this one.
        reset_at: Epoch seconds at which the current window ends.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int

    def retry_after(self, now: float) -> int:
        """Seconds until the window resets (at least 1)."""
        return max(1, math.ceil(self.reset_at - now))


class FixedWindowLimiter:
    """Per-scope fixed-window counter."""

    def __init__(
        self,
        store: KeyValueStore,
        prefix: str,
        window: int = WINDOW_SECONDS,
        grace: int = GRACE_SECONDS,
        clock: Clock = time.time,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._window = window
        self._grace = grace
        self._clock = clock

    def check_and_increment(self, scope: str, limit: int) -> RateDecision:
        """Count one request for *scope* unless the window's limit is reached.

        ``limit <= 0`` disables the limiter: always allowed, nothing counted.
        """
        now = self._clock()
        window_id = self._window_id(now)
        reset_at = (window_id + 1) * self._window
        if limit <= 0:
            return RateDecision(True, 0, 0, reset_at)

        key = self._key(scope, window_id)
        count = int(self._store.get(key) or 0)
        if count >= limit:
            logger.info("Rate limit reached for %s (%d/%d)", self._prefix, count, limit)
            return RateDecision(False, limit, 0, reset_at)

        count = self._store.incr(key, 1, ttl=self._window + self._grace)
        return RateDecision(True, limit, max(0, limit - count), reset_at)

    def peek(self, scope: str, limit: int) -> RateDecision:
        """Report the current window's state for *scope* without counting."""
        now = self._clock()
        window_id = self._window_id(now)
        reset_at = (window_id + 1) * self._window
        if limit <= 0:
            return RateDecision(True, 0, 0, reset_at)
        count = int(self._store.get(self._key(scope, window_id)) or 0)
        return RateDecision(count < limit, limit, max(0, limit - count), reset_at)

    def _window_id(self, now: float) -> int:
        return int(now // self._window)

    def _key(self, scope: str, window_id: int) -> str:
        return f"{self._prefix}:{scope}:{window_id}"


def hash_ip(ip: str) -> str:
    """Stable, non-reversible scope id for a client IP."""
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()[:16]


class RateGovernor:
    """Global provider-call budget plus per-IP endpoint budget."""

    def __init__(
        self,
        store: KeyValueStore,
        global_per_minute: int,
        per_ip_per_minute: int,
        clock: Clock = time.time,
    ) -> None:
        self.global_per_minute = global_per_minute
        self.per_ip_per_minute = per_ip_per_minute
        self._global = FixedWindowLimiter(store, "aiss:rate:provider", clock=clock)
        self._per_ip = FixedWindowLimiter(store, "aiss:rate:ip", clock=clock)

    def allow_provider_call(self) -> RateDecision:
        return self._global.check_and_increment(GLOBAL_SCOPE, self.global_per_minute)

    def allow_client(self, ip: str) -> RateDecision:
        return self._per_ip.check_and_increment(hash_ip(ip), self.per_ip_per_minute)

    def provider_status(self) -> RateDecision:
        return self._global.peek(GLOBAL_SCOPE, self.global_per_minute)

    def client_status(self, ip: str) -> RateDecision:
        return self._per_ip.peek(hash_ip(ip), self.per_ip_per_minute)
