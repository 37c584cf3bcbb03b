from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from webscout.config import settings
from webscout.research_core.models.interfaces import ExtractedDocument, ExtractionOptions
from webscout.tools.web_utils import canonical_url

Clock = Callable[[], float]
CacheKey = tuple[str, ExtractionOptions]


@dataclass(frozen=True, slots=True)
class CacheEntry:
    document: ExtractedDocument
    timestamp: float


class ExtractionCache:
    """In-memory TTL cache of extraction results keyed by (url, options).

    Reads never return an entry older than the TTL; expired entries stay in
    place until ``sweep`` removes them.
    """

    def __init__(self, *, ttl_seconds: float | None = None, clock: Clock | None = None):
        self.ttl_seconds = settings.extraction_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(url: str, options: ExtractionOptions) -> CacheKey:
        return canonical_url(url), options

    def get(self, url: str, options: ExtractionOptions) -> ExtractedDocument | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(self.key(url, options))
            if entry is None or now - entry.timestamp > self.ttl_seconds:
                self.misses += 1
                return None
            self.hits += 1
            return entry.document

    def put(self, url: str, options: ExtractionOptions, document: ExtractedDocument) -> None:
        with self._lock:
            self._entries[self.key(url, options)] = CacheEntry(document=document, timestamp=self._clock())

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now - e.timestamp > self.ttl_seconds]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
