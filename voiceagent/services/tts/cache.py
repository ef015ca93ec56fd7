"""Process-wide cache of synthesized replies.

Keyed by the exact reply text: identical text yields identical audio no
matter which caller hears it, so entries are shared by every session.

Insertion is best-effort. Once the cache holds ``capacity`` entries, new
phrases are dropped rather than evicting anything already cached, and
entries never expire.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from voiceagent.logging_config import get_logger
from voiceagent.observability.metrics import record_cache_lookup

logger: Any = get_logger(__name__)

DEFAULT_CAPACITY = 100


@dataclass
class CacheCounters:
    hits: int = 0
    misses: int = 0
    rejected: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total * 100.0) if total > 0 else 0.0


class SynthesisCache:
    """Bounded text -> audio map, safe to share between call tasks."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._capacity = max(capacity, 0)
        self._entries: dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.counters = CacheCounters()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, text: str) -> bytes | None:
        """Look up cached audio. Returns None on miss."""
        with self._lock:
            audio = self._entries.get(text)
            if audio is None:
                self.counters.misses += 1
            else:
                self.counters.hits += 1

        record_cache_lookup(hit=audio is not None)
        return audio

    def put(self, text: str, audio: bytes) -> bool:
        """Store audio for text if there is room.

        Returns:
            True if the entry was stored, False if the cache is full or
            already holds the text.
        """
        with self._lock:
            if text in self._entries:
                return False
            if len(self._entries) >= self._capacity:
                self.counters.rejected += 1
                return False
            self._entries[text] = audio
            return True

    def clear(self) -> int:
        """Drop all cached audio. Returns the number of entries removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()

        logger.info(f"Synthesis cache cleared ({removed} entries)")
        return removed

    def stats(self) -> dict[str, Any]:
        with self._lock:
            keys = list(self._entries)
            counters = CacheCounters(
                hits=self.counters.hits,
                misses=self.counters.misses,
                rejected=self.counters.rejected,
            )

        return {
            "size": len(keys),
            "capacity": self._capacity,
            "keys": keys,
            "hits": counters.hits,
            "misses": counters.misses,
            "rejected": counters.rejected,
            "hit_rate": counters.hit_rate,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, text: object) -> bool:
        with self._lock:
            return text in self._entries
