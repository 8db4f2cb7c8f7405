from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from typing import Any, Callable


@dataclass
class CacheEntry:
    key: str
    payload: Any
    stored_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now < self.stored_at + self.ttl


def make_fingerprint(namespace: str, inputs: dict) -> str:
    normalized = json.dumps(inputs, sort_keys=True, default=str)
    return f"{namespace}:{hashlib.sha256(normalized.encode()).hexdigest()[:16]}"


class ResultCache:
    """Key -> payload store with per-entry TTL and lazy expiry.

    Expired entries are dropped when they are read; nothing runs in the
    background. Two identical concurrent misses may both compute and write,
    the second write simply overwrites the first.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry and entry.is_fresh(self._clock()):
            self._hits += 1
            return entry.payload
        if entry:
            self._entries.pop(key, None)
        self._misses += 1
        return None

    def set(self, key: str, payload: Any, ttl: float) -> None:
        if ttl <= 0:
            return
        self._entries[key] = CacheEntry(key=key, payload=payload, stored_at=self._clock(), ttl=ttl)

    def get_or_compute(
        self, key: str, ttl: float, compute: Callable[[], Any],
    ) -> tuple[Any, bool]:
        cached = self.get(key)
        if cached is not None:
            return cached, True
        payload = compute()
        self.set(key, payload, ttl)
        return payload, False

    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }

    def clear(self, namespace: str | None = None) -> int:
        """Evict every entry, or only those of one feature namespace."""
        if namespace is None:
            removed = len(self._entries)
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            return removed
        prefix = f"{namespace}:"
        stale = [k for k in list(self._entries) if k.startswith(prefix)]
        for k in stale:
            self._entries.pop(k, None)
        return len(stale)
