from __future__ import annotations

from typing import Protocol

from loguru import logger

from webscout.config import settings
from webscout.errors import SearchError
from webscout.research_core.models.interfaces import SearchResult
from webscout.tools import brave_search, jina_search


class SearchProvider(Protocol):
    async def search(
        self,
        query: str,
        *,
        limit: int = 10,
        time_filter: str | None = None,
    ) -> list[SearchResult]: ...


class WebSearchProvider:
    """Dispatches to the configured provider, with optional Jina fallback."""

    def __init__(self, *, provider: str | None = None, fallback_to_jina: bool | None = None):
        self.provider = (provider or settings.search_provider).lower().strip()
        self.fallback_to_jina = (
            settings.search_fallback_to_jina if fallback_to_jina is None else fallback_to_jina
        )

    async def search(
        self,
        query: str,
        *,
        limit: int = 10,
        time_filter: str | None = None,
    ) -> list[SearchResult]:
        if self.provider == "jina":
            return await jina_search.search(query, max_results=limit, time_range=time_filter)
        if self.provider != "brave":
            raise ValueError(f"Unsupported SEARCH_PROVIDER: {self.provider}")

        try:
            return await brave_search.search(query, max_results=limit, time_range=time_filter)
        except SearchError as exc:
            if not (self.fallback_to_jina and settings.jina_api_key):
                raise
            logger.warning(f"Brave search failed ({exc}); falling back to Jina")
            return await jina_search.search(query, max_results=limit, time_range=time_filter)
