"""ComputationCache: fingerprint reuse, TTL, error propagation, single-flight, eviction."""

import threading
import time
from datetime import datetime, timedelta

import pytest

from liftlens.cache import ComputationCache, filtered_cache_key, fingerprint_sets
from liftlens.models import WorkoutSet


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _counter():
    calls: list[int] = []

    def compute() -> int:
        calls.append(1)
        return len(calls)

    return calls, compute


def test_computes_once_per_fingerprint() -> None:
    cache = ComputationCache()
    calls, compute = _counter()
    assert cache.get_or_compute("k", "fp1", compute) == 1
    assert cache.get_or_compute("k", "fp1", compute) == 1
    assert len(calls) == 1
    assert cache.stats() == {"hits": 1, "misses": 1, "size": 1, "in_flight": 0}


def test_fingerprint_change_recomputes_and_replaces() -> None:
    cache = ComputationCache()
    calls, compute = _counter()
    cache.get_or_compute("k", "fp1", compute)
    assert cache.get_or_compute("k", "fp2", compute) == 2
    assert cache.get("k", "fp1") is None
    assert cache.get("k", "fp2") == 2
    assert len(cache) == 1


def test_ttl_expiry() -> None:
    clock = FakeClock()
    cache = ComputationCache(default_ttl_ms=1000, clock=clock)
    calls, compute = _counter()
    cache.get_or_compute("k", "fp", compute)
    clock.now += 0.5
    assert cache.get_or_compute("k", "fp", compute) == 1
    clock.now += 0.5
    assert cache.get_or_compute("k", "fp", compute) == 2
    assert cache.get_or_compute("short", "fp", compute, ttl_ms=0) == 3
    assert cache.get("short", "fp") is None


def test_errors_propagate_and_are_not_stored() -> None:
    cache = ComputationCache()

    def boom() -> int:
        raise ValueError("bad input")

    with pytest.raises(ValueError, match="bad input"):
        cache.get_or_compute("k", "fp", boom)
    assert len(cache) == 0
    assert cache.get_or_compute("k", "fp", lambda: 7) == 7


def test_concurrent_callers_share_one_computation() -> None:
    cache = ComputationCache()
    calls: list[int] = []
    started = threading.Event()
    release = threading.Event()
    results: list[int] = []

    def slow() -> int:
        calls.append(1)
        started.set()
        release.wait(5)
        return 42

    def worker() -> None:
        results.append(cache.get_or_compute("k", "fp", slow))

    first = threading.Thread(target=worker)
    first.start()
    assert started.wait(5)
    others = [threading.Thread(target=worker) for _ in range(4)]
    for t in others:
        t.start()
    time.sleep(0.05)
    release.set()
    for t in [first, *others]:
        t.join(5)
    assert len(calls) == 1
    assert results == [42] * 5
    assert cache.stats()["in_flight"] == 0


def test_key_locks_released_after_each_call() -> None:
    cache = ComputationCache(max_entries=3)
    for i in range(20):
        cache.get_or_compute(f"k{i}", "fp", lambda: i)

    def boom() -> int:
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        cache.get_or_compute("broken", "fp", boom)
    assert cache.stats()["in_flight"] == 0
    assert len(cache) == 3


def test_oldest_entries_evicted() -> None:
    cache = ComputationCache(max_entries=2)
    for key in ("a", "b", "c"):
        cache.get_or_compute(key, "fp", lambda: key)
    assert cache.get("a", "fp") is None
    assert cache.get("b", "fp") == "b"
    assert cache.get("c", "fp") == "c"


def test_invalidate_prefix_and_clear() -> None:
    cache = ComputationCache()
    for key in ("trend:Squat", "trend:Bench", "daily_summaries"):
        cache.get_or_compute(key, "fp", lambda: 1)
    assert cache.invalidate("trend:") == 2
    assert len(cache) == 1
    cache.clear()
    assert cache.stats() == {"hits": 0, "misses": 0, "size": 0, "in_flight": 0}


def test_fingerprint_and_key_helpers() -> None:
    day = datetime(2025, 1, 6, 18, 0)
    sets = [
        WorkoutSet(exercise_title="Squat", start_time=day + timedelta(days=1), weight_kg=100, reps=5),
        WorkoutSet(exercise_title="Squat", start_time=day, weight_kg=100, reps=5),
    ]
    fp = fingerprint_sets(sets, unit="kg", grouped=False)
    assert fp == "2:2025-01-07T18:00:00:2025-01-06T18:00:00|grouped=False,unit=kg"
    assert fingerprint_sets(sets[:1]) != fingerprint_sets(sets)
    assert fingerprint_sets([]) == "0::|"
    assert filtered_cache_key("muscle_volume", month="2025-01", range="all") == "muscle_volume:month=2025-01:range=all"
    assert filtered_cache_key("prs") == "prs"
