"""Coarse per-user request counter (fixed window) backed by the ``limits`` package."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

NAMESPACE = "docportal-user"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class UserRateLimiter:
    """
    Allow at most ``max_requests`` per user in each ``window_seconds`` window.

    Counting and window expiry are delegated to a ``limits`` fixed-window
    strategy; the default in-process ``MemoryStorage`` expires its own keys.
    """

    def __init__(self, max_requests: int, window_seconds: int, storage: Storage | None = None) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._item = RateLimitItemPerSecond(max_requests, window_seconds, namespace=NAMESPACE)
        self._storage = storage or MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)

    @property
    def max_requests(self) -> int:
        return self._item.amount

    @property
    def window_seconds(self) -> int:
        return self._item.get_expiry()

    def hit(self, user_id: str) -> RateLimitDecision:
        """Count one request for ``user_id`` and decide whether it may proceed."""
        allowed = self._strategy.hit(self._item, user_id)
        stats = self._strategy.get_window_stats(self._item, user_id)
        if allowed:
            return RateLimitDecision(allowed=True, remaining=stats.remaining)

        retry_after = max(1, math.ceil(stats.reset_time - time.time()))
        logger.info("Rate limit exceeded user_id=%s retry_after=%ss", user_id, retry_after)
        return RateLimitDecision(allowed=False, remaining=0, retry_after_seconds=retry_after)

    def reset(self, user_id: str | None = None) -> None:
        if user_id is None:
            self._storage.reset()
        else:
            self._strategy.clear(self._item, user_id)
