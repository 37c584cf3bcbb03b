from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import httpx
from loguru import logger

from webscout.config import settings
from webscout.errors import FetchError, ParseError
from webscout.research_core.extract.service import ExtractService, truncate_intelligently
from webscout.research_core.models.interfaces import (
    ExtractedDocument,
    ExtractionMethod,
    ExtractionOptions,
)
from webscout.research_core.scrape.retry import Action, RetryPolicy, static_policy

Sleep = Callable[[float], Awaitable[None]]


def browser_headers(user_agent: str | None = None) -> dict[str, str]:
    return {
        "User-Agent": user_agent or settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }


def _classify_transport_error(url: str, exc: httpx.HTTPError) -> FetchError:
    if isinstance(exc, httpx.ConnectTimeout):
        return FetchError(url, f"connection timed out: {exc}", kind="connect_timeout")
    if isinstance(exc, httpx.TimeoutException):
        return FetchError(url, f"request timed out: {exc}", kind="timeout")
    if isinstance(exc, httpx.ConnectError):
        message = str(exc)
        lowered = message.lower()
        if "refused" in lowered:
            return FetchError(url, f"connection refused: {message}", kind="connection_refused")
        if "name or service not known" in lowered or "nodename" in lowered or "getaddrinfo" in lowered:
            return FetchError(url, f"DNS lookup failed: {message}", kind="dns")
        return FetchError(url, f"connection failed: {message}", kind="network")
    return FetchError(url, f"{type(exc).__name__}: {exc}", kind="network")


class StaticExtractor:
    """Plain HTTP fetch plus readable-content parsing."""

    method = ExtractionMethod.STATIC

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        retry_policy: RetryPolicy | None = None,
        client: httpx.AsyncClient | None = None,
        parser: ExtractService | None = None,
        sleep: Sleep | None = None,
    ):
        self.timeout_seconds = timeout_seconds or settings.static_timeout_seconds
        self.retry_policy = retry_policy or static_policy(
            settings.static_retry_max,
            settings.static_backoff_base_seconds,
        )
        self._client = client
        self._parser = parser or ExtractService()
        self._sleep = sleep or asyncio.sleep

    async def extract(
        self,
        url: str,
        options: ExtractionOptions | None = None,
    ) -> ExtractedDocument:
        options = options or ExtractionOptions()
        started = time.monotonic()
        html, final_url = await self._fetch_with_retries(url)

        parsed = await asyncio.to_thread(
            self._parser.parse,
            url=final_url,
            raw_html=html,
            include_images=options.include_images,
        )
        if parsed is None:
            raise ParseError(url, "no readable content after all parsing fallbacks")

        content, truncated = truncate_intelligently(parsed.content, options.max_length)
        logger.debug(
            f"Static extraction of {url} via {parsed.method}: {len(content)} chars "
            f"in {int((time.monotonic() - started) * 1000)}ms"
        )
        return ExtractedDocument(
            url=url,
            title=parsed.title,
            content=content,
            extraction_method=ExtractionMethod.STATIC,
            author=parsed.author,
            publish_date=parsed.publish_date,
            description=parsed.description,
            images=tuple(parsed.images),
            truncated=truncated,
            final_url=final_url,
            content_type=parsed.content_type,
        )

    async def _fetch_with_retries(self, url: str) -> tuple[str, str]:
        attempt = 1
        while True:
            try:
                return await self._fetch(url)
            except FetchError as exc:
                action = self.retry_policy.decide(attempt, exc)
                if action is not Action.RETRY:
                    raise
                delay = self.retry_policy.backoff(attempt)
                logger.warning(
                    f"Static fetch attempt {attempt} failed for {url}: {exc.message}; retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                attempt += 1

    async def _fetch(self, url: str) -> tuple[str, str]:
        if self._client is not None:
            return await self._get(self._client, url)
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            follow_redirects=True,
        ) as client:
            return await self._get(client, url)

    async def _get(self, client: httpx.AsyncClient, url: str) -> tuple[str, str]:
        try:
            response = await client.get(
                url,
                headers=browser_headers(),
                timeout=self.timeout_seconds,
                follow_redirects=True,
            )
        except httpx.HTTPError as exc:
            raise _classify_transport_error(url, exc) from exc

        if not response.is_success:
            raise FetchError(
                url,
                f"HTTP {response.status_code}",
                kind="http_status",
                status_code=response.status_code,
            )
        return response.text, str(response.url)
