"""Tests for the revocation cache and the background sweeper."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from docportal.core.revocation import RevocationCache, Sweeper


def test_add_is_idempotent(revocation, clock):
    expires = clock() + timedelta(hours=1)
    assert revocation.add("t1", expires) is True
    assert revocation.add("t1", expires) is False
    assert "t1" in revocation
    assert len(revocation) == 1


def test_readding_keeps_the_later_expiry(revocation, clock):
    revocation.add("t1", clock() + timedelta(hours=2))
    revocation.add("t1", clock() + timedelta(minutes=5))
    clock.advance(minutes=30)
    assert revocation.purge_expired() == 0
    assert "t1" in revocation


def test_purge_drops_only_expired_entries(revocation, clock):
    revocation.add("short", clock() + timedelta(minutes=1))
    revocation.add("long", clock() + timedelta(hours=1))
    clock.advance(minutes=1)
    assert revocation.purge_expired() == 1
    assert "short" not in revocation
    assert "long" in revocation


def test_oversized_cache_purges_on_insert(clock):
    cache = RevocationCache(clock=clock, purge_threshold=2)
    cache.add("old-1", clock() - timedelta(seconds=1))
    cache.add("old-2", clock() - timedelta(seconds=1))
    assert len(cache) == 2
    cache.add("fresh", clock() + timedelta(hours=1))
    assert len(cache) == 1
    assert "fresh" in cache


def test_clear(revocation, clock):
    revocation.add("t1", clock() + timedelta(hours=1))
    revocation.clear()
    assert len(revocation) == 0


def test_concurrent_adds_and_checks_never_lose_a_revocation(revocation, clock):
    expires = clock() + timedelta(hours=1)
    tokens = [f"token-{i}" for i in range(500)]

    def revoke(token):
        revocation.add(token, expires)
        return token in revocation

    def probe(token):
        return token in revocation

    with ThreadPoolExecutor(max_workers=16) as pool:
        probes = [pool.submit(probe, t) for t in tokens]
        results = list(pool.map(revoke, tokens))
        for future in probes:
            future.result()

    assert all(results)
    assert len(revocation) == 500
    assert all(t in revocation for t in tokens)


def test_concurrent_purge_and_add_do_not_interfere(revocation, clock):
    expires = clock() + timedelta(hours=1)

    def add_many(prefix):
        for i in range(200):
            revocation.add(f"{prefix}-{i}", expires)

    def purge_many():
        for _ in range(200):
            revocation.purge_expired()

    threads = [threading.Thread(target=add_many, args=(p,)) for p in ("a", "b", "c")]
    threads.append(threading.Thread(target=purge_many))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(revocation) == 600


# ---- Sweeper --------------------------------------------------------------------------


def test_sweep_once_continues_past_a_failing_target():
    broken = MagicMock()
    broken.purge_expired.side_effect = RuntimeError("boom")
    healthy = MagicMock()
    healthy.purge_expired.return_value = 3

    sweeper = Sweeper(60, broken, healthy)
    assert sweeper.sweep_once() == 3
    healthy.purge_expired.assert_called_once()


def test_sweeper_runs_in_background_until_stopped():
    called = threading.Event()
    target = MagicMock()
    target.purge_expired.side_effect = lambda: called.set() or 0

    sweeper = Sweeper(0.01, target)
    sweeper.start()
    try:
        assert called.wait(timeout=2.0)
        assert sweeper.running
    finally:
        sweeper.stop()
    assert not sweeper.running

    calls = target.purge_expired.call_count
    time.sleep(0.05)
    assert target.purge_expired.call_count == calls


def test_sweeper_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        Sweeper(0)
