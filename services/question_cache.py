"""Semantic question cache shared across interview sessions."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, NamedTuple, Optional

from agents.strategy import depth_tier
from config.settings import Settings, settings

logger = logging.getLogger(__name__)


class CacheKey(NamedTuple):
    stage: str
    pattern: str
    tier: int
    keywords: tuple[str, ...]


@dataclass
class CacheEntry:
    key: CacheKey
    question: str
    created_at: float
    hit_count: int = 0


def make_key(stage: str, pattern: str, depth: int, keywords: Iterable[str]) -> CacheKey:
    """Build a key from the depth (bucketed to its tier) and a sorted keyword set."""

    return CacheKey(stage, pattern, depth_tier(depth), tuple(sorted(set(keywords))))


class QuestionCache:
    """TTL cache with oldest-first eviction and keyword-overlap lookup.

    All reads and writes go through one lock: ``get`` also mutates (expiry
    and hit counts), so it is serialized together with ``set``.
    """

    def __init__(
        self,
        *,
        ttl_seconds: Optional[float] = None,
        max_size: Optional[int] = None,
        similarity_ratio: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        cfg: Optional[Settings] = None,
    ):
        cfg = cfg or settings
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else cfg.CACHE_TTL_SECONDS
        self.max_size = max_size if max_size is not None else cfg.CACHE_MAX_SIZE
        self.similarity_ratio = similarity_ratio if similarity_ratio is not None else cfg.CACHE_SIMILARITY_RATIO
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds

    def get(self, key: CacheKey) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                del self._entries[key]
                logger.debug("cache entry expired stage=%s tier=%s", key.stage, key.tier)
                return None
            entry.hit_count += 1
            return entry.question

    def set(self, key: CacheKey, question: str) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                oldest = min(self._entries.values(), key=lambda item: item.created_at)
                del self._entries[oldest.key]
            self._entries[key] = CacheEntry(key=key, question=question, created_at=self._clock())

    def find_similar(self, stage: str, pattern: str, keywords: Iterable[str]) -> Optional[str]:
        """First live entry for (stage, pattern) sharing enough keywords.

        An empty query never matches: with nothing to compare, every entry
        would qualify.
        """

        query = set(keywords)
        if not query:
            return None
        needed = len(query) * self.similarity_ratio
        with self._lock:
            now = self._clock()
            for entry in list(self._entries.values()):
                if entry.key.stage != stage or entry.key.pattern != pattern:
                    continue
                if self._expired(entry, now):
                    del self._entries[entry.key]
                    continue
                overlap = len(query.intersection(entry.key.keywords))
                if overlap and overlap >= needed:
                    entry.hit_count += 1
                    return entry.question
        return None

    def stats(self) -> Dict[str, float]:
        with self._lock:
            size = len(self._entries)
            total_hits = sum(entry.hit_count for entry in self._entries.values())
        return {
            "size": size,
            "total_hits": total_hits,
            "average_hits": (total_hits / size) if size else 0.0,
        }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


__all__ = ["CacheKey", "CacheEntry", "QuestionCache", "make_key"]
