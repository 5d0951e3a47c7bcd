"""
Revocation set with TTL, plus a background sweeper.

The revocation set is the only stateful part of token verification: tokens
are self-verifying, but a logout must invalidate them before their natural
expiry. Each entry lives until the revoked token's own ``exp``; after that the
signature check would reject the token anyway, so the entry can be dropped.

Everything here is safe to share between request threads. Membership checks,
insertions and purges take the same lock, so a purge never races an insertion
for the same key.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Protocol

from .models import Clock, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PURGE_THRESHOLD = 1000


class RevocationCache:
    """
    In-memory revocation set keyed by token string.

    ``add`` is idempotent: re-adding a token keeps the later of the two
    expiries and never resurrects anything. Once the cache holds more than
    ``purge_threshold`` entries, expired ones are dropped on insert.
    """

    def __init__(self, clock: Clock = utcnow, purge_threshold: int = DEFAULT_PURGE_THRESHOLD) -> None:
        self._clock = clock
        self._purge_threshold = purge_threshold
        self._entries: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def add(self, token: str, expires_at: datetime) -> bool:
        """Record ``token`` as revoked until ``expires_at``. Returns True if newly added."""
        with self._lock:
            current = self._entries.get(token)
            if current is not None:
                if expires_at > current:
                    self._entries[token] = expires_at
                return False
            self._entries[token] = expires_at
            oversized = len(self._entries) > self._purge_threshold
        if oversized:
            self.purge_expired()
        return True

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def purge_expired(self) -> int:
        """Drop entries whose expiry has passed. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [token for token, exp in self._entries.items() if exp <= now]
            for token in expired:
                del self._entries[token]
        if expired:
            logger.debug("Revocation cache purged entries=%s remaining=%s", len(expired), len(self))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class Purgeable(Protocol):
    def purge_expired(self) -> int: ...


class Sweeper:
    """
    Daemon thread that periodically calls ``purge_expired`` on its targets.

    Request-path checks never wait on the sweeper: each purge holds a
    target's lock only for the duration of one scan.
    """

    def __init__(self, interval_seconds: float, *targets: Purgeable) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._interval = interval_seconds
        self._targets = targets
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="docportal-sweeper", daemon=True)
        self._thread.start()
        logger.info("Sweeper started interval=%ss targets=%s", self._interval, len(self._targets))

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Sweeper stopped")

    def sweep_once(self) -> int:
        removed = 0
        for target in self._targets:
            try:
                removed += target.purge_expired()
            except Exception:
                logger.exception("Sweeper target %s failed", type(target).__name__)
        return removed

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.sweep_once()
