from __future__ import annotations

import asyncio
import contextlib
import time
from collections import Counter
from typing import Any, Awaitable, Callable, Iterable, Protocol

from loguru import logger

from webscout.config import settings
from webscout.errors import ExtractionError, describe_failure
from webscout.research_core.extract.quality import QualityThresholds, assess
from webscout.research_core.models.interfaces import (
    BatchItem,
    ExtractedDocument,
    ExtractionMethod,
    ExtractionOptions,
)
from webscout.research_core.routing import MethodClassifier
from webscout.research_core.scrape.dynamic import DynamicExtractor
from webscout.research_core.scrape.retry import COORDINATOR_POLICY, Action, RetryPolicy
from webscout.research_core.scrape.static import StaticExtractor
from webscout.services.logger import log_extraction
from webscout.tools.extraction_cache import ExtractionCache
from webscout.tools.web_utils import ensure_fetchable

Sleep = Callable[[float], Awaitable[None]]


class Extractor(Protocol):
    async def extract(self, url: str, options: ExtractionOptions) -> ExtractedDocument: ...


class ExtractionCoordinator:
    """Chooses static or dynamic extraction per URL, gates quality and caches.

    A poor or failed static result falls back to dynamic, and a failed dynamic
    result falls back to static. Blocked URLs and unreachable hosts fail fast.
    """

    def __init__(
        self,
        *,
        static: Extractor | None = None,
        dynamic: Extractor | None = None,
        cache: ExtractionCache | None = None,
        classifier: MethodClassifier | None = None,
        thresholds: QualityThresholds | None = None,
        blocked_domains: Iterable[str] | None = None,
        policy: RetryPolicy = COORDINATOR_POLICY,
        batch_max_concurrent: int | None = None,
        batch_delay_seconds: float | None = None,
        sweep_interval_seconds: float | None = None,
        sleep: Sleep | None = None,
    ):
        self.static = static or StaticExtractor()
        self.dynamic = dynamic or DynamicExtractor()
        self.cache = cache or ExtractionCache()
        self.classifier = classifier or MethodClassifier()
        self.thresholds = thresholds or QualityThresholds(
            min_chars=settings.quality_min_chars,
            max_nav_ratio=settings.quality_max_nav_ratio,
        )
        self.blocked_domains = frozenset(
            settings.blocked_domain_set if blocked_domains is None else blocked_domains
        )
        self.policy = policy
        self.batch_max_concurrent = batch_max_concurrent or settings.batch_max_concurrent
        self.batch_delay_seconds = (
            settings.batch_chunk_delay_seconds if batch_delay_seconds is None else batch_delay_seconds
        )
        self.sweep_interval_seconds = sweep_interval_seconds or settings.extraction_cache_sweep_seconds
        self._sleep = sleep or asyncio.sleep
        self._sweep_task: asyncio.Task | None = None
        self.fallbacks = 0
        self.methods: Counter[str] = Counter()

    async def extract(
        self,
        url: str,
        options: ExtractionOptions | None = None,
        method: ExtractionMethod | None = None,
    ) -> ExtractedDocument:
        options = options or ExtractionOptions()
        ensure_fetchable(url, self.blocked_domains)

        cached = self.cache.get(url, options)
        if cached is not None:
            logger.debug(f"Extraction cache hit for {url}")
            return cached

        primary = method or self.classifier.classify(url) or ExtractionMethod.STATIC
        started = time.monotonic()
        try:
            document, fallback_used = await self._extract_with_fallback(url, options, primary)
        except ExtractionError as exc:
            log_extraction(
                url=url,
                method=primary.value,
                status="failed",
                duration_ms=int((time.monotonic() - started) * 1000),
                error=exc.message,
            )
            raise

        self.methods[document.extraction_method.value] += 1
        log_extraction(
            url=url,
            method=document.extraction_method.value,
            status="success",
            duration_ms=int((time.monotonic() - started) * 1000),
            content_length=len(document.content),
            fallback_used=fallback_used,
        )
        self.cache.put(url, options, document)
        self.cache.sweep()
        return document

    async def extract_for_summarization(self, url: str, max_length: int = 4000) -> ExtractedDocument:
        return await self.extract(url, ExtractionOptions.for_summarization(max_length))

    async def extract_for_analysis(self, url: str, max_length: int = 10000) -> ExtractedDocument:
        return await self.extract(url, ExtractionOptions.for_analysis(max_length))

    async def extract_batch(
        self,
        urls: list[str],
        options: ExtractionOptions | None = None,
        max_concurrent: int | None = None,
    ) -> list[BatchItem]:
        size = max(int(max_concurrent or self.batch_max_concurrent), 1)
        chunks = [urls[i : i + size] for i in range(0, len(urls), size)]
        items: list[BatchItem] = []
        for index, chunk in enumerate(chunks):
            outcomes = await asyncio.gather(
                *(self.extract(url, options) for url in chunk),
                return_exceptions=True,
            )
            for url, outcome in zip(chunk, outcomes):
                items.append(self._batch_item(url, outcome))
            if index < len(chunks) - 1:
                await self._sleep(self.batch_delay_seconds)
        return items

    def stats(self) -> dict[str, Any]:
        return {
            "cache_size": len(self.cache),
            "cache_hits": self.cache.hits,
            "cache_misses": self.cache.misses,
            "cache_hit_rate": round(self.cache.hit_rate, 4),
            "fallbacks": self.fallbacks,
            "methods": dict(self.methods),
        }

    def clear_cache(self) -> None:
        self.cache.clear()

    def start(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def aclose(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None
        manager = getattr(self.dynamic, "browser_manager", None)
        if manager is not None:
            await manager.aclose()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            removed = self.cache.sweep()
            if removed:
                logger.debug(f"Swept {removed} expired extraction cache entries")

    def _extractor(self, method: ExtractionMethod) -> Extractor:
        return self.static if method is ExtractionMethod.STATIC else self.dynamic

    async def _extract_with_fallback(
        self,
        url: str,
        options: ExtractionOptions,
        primary: ExtractionMethod,
    ) -> tuple[ExtractedDocument, bool]:
        try:
            document = await self._extractor(primary).extract(url, options)
        except ExtractionError as exc:
            if self.policy.decide(1, exc, fallback_available=True) is not Action.FALLBACK:
                raise
            self.fallbacks += 1
            logger.info(f"{primary.value} extraction failed for {url} ({exc.message}); trying {primary.other.value}")
            try:
                return await self._extractor(primary.other).extract(url, options), True
            except ExtractionError as fallback_exc:
                logger.warning(f"{primary.other.value} fallback also failed for {url}: {fallback_exc.message}")
                raise exc from fallback_exc

        if primary is not ExtractionMethod.STATIC:
            return document, False

        verdict = assess(document.content, self.thresholds)
        if verdict.acceptable:
            return document, False

        self.fallbacks += 1
        logger.info(f"Static result for {url} rejected ({verdict.reason}); trying dynamic")
        try:
            return await self.dynamic.extract(url, options), True
        except ExtractionError as exc:
            if document.content.strip():
                logger.warning(f"Dynamic fallback failed for {url} ({exc.message}); keeping static result")
                return document, False
            raise

    def _batch_item(self, url: str, outcome: ExtractedDocument | BaseException) -> BatchItem:
        if isinstance(outcome, ExtractedDocument):
            return BatchItem(url=url, success=True, data=outcome)
        if not isinstance(outcome, Exception):
            raise outcome
        if not isinstance(outcome, ExtractionError):
            logger.opt(exception=outcome).error(f"Unexpected error extracting {url}")
        return BatchItem(url=url, success=False, error=describe_failure(outcome, url))
