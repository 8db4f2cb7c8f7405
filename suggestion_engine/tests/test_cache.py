from __future__ import annotations

import threading

from conftest import FakeClock

from suggestion_engine.ranking.cache import ResultCache, make_fingerprint


def test_fingerprint_ignores_key_order():
    assert make_fingerprint("f", {"a": 1, "b": 2}) == make_fingerprint("f", {"b": 2, "a": 1})
    assert make_fingerprint("f", {"a": 1}) != make_fingerprint("f", {"a": 2})


def test_fingerprint_is_namespaced():
    key = make_fingerprint("search_suggestions", {"q": "servo"})
    namespace, digest = key.split(":")
    assert namespace == "search_suggestions"
    assert len(digest) == 16


def test_cache_miss_then_hit():
    cache = ResultCache(clock=FakeClock())
    calls = []

    def compute():
        calls.append(1)
        return {"items": [1, 2]}

    first, hit1 = cache.get_or_compute("k", 300, compute)
    second, hit2 = cache.get_or_compute("k", 300, compute)
    assert (hit1, hit2) == (False, True)
    assert first == second
    assert len(calls) == 1


def test_entry_expires_at_ttl():
    clock = FakeClock()
    cache = ResultCache(clock=clock)
    cache.set("k", "v", 300)

    clock.advance(299.9)
    assert cache.get("k") == "v"

    clock.advance(0.1)
    assert cache.get("k") is None
    assert cache.stats()["size"] == 0


def test_non_positive_ttl_is_not_stored():
    cache = ResultCache(clock=FakeClock())
    payload, hit = cache.get_or_compute("k", 0, lambda: "fresh")
    assert (payload, hit) == ("fresh", False)
    assert cache.stats()["size"] == 0


def test_stats_track_hits_and_misses():
    cache = ResultCache(clock=FakeClock())
    cache.get_or_compute("k", 60, lambda: 1)
    cache.get_or_compute("k", 60, lambda: 1)
    cache.get_or_compute("k", 60, lambda: 1)
    stats = cache.stats()
    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 66.7


def test_clear_by_namespace():
    cache = ResultCache(clock=FakeClock())
    cache.set(make_fingerprint("autocomplete", {"q": 1}), 1, 60)
    cache.set(make_fingerprint("autocomplete", {"q": 2}), 2, 60)
    cache.set(make_fingerprint("spell_check", {"q": 1}), 3, 60)

    assert cache.clear("autocomplete") == 2
    assert cache.stats()["size"] == 1
    assert cache.clear() == 1
    assert cache.stats() == {"size": 0, "hits": 0, "misses": 0, "hit_rate": 0.0}


def test_namespace_clear_tolerates_concurrent_writes():
    cache = ResultCache(clock=FakeClock())
    errors = []
    done = threading.Event()

    def writer():
        i = 0
        while not done.is_set():
            cache.set(f"autocomplete:{i}", i, 60)
            cache.set(f"search_suggestions:{i}", i, 60)
            i += 1

    thread = threading.Thread(target=writer)
    thread.start()
    try:
        for _ in range(500):
            try:
                cache.clear("autocomplete")
            except RuntimeError as exc:
                errors.append(exc)
    finally:
        done.set()
        thread.join()

    assert errors == []
    cache.clear("autocomplete")
    assert cache.clear("autocomplete") == 0
