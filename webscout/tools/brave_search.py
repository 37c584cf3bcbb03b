from __future__ import annotations

from typing import Any

import httpx

from webscout.config import settings
from webscout.errors import SearchError
from webscout.research_core.models.interfaces import SearchResult

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"

# Brave freshness codes: past day / week / month / year.
FRESHNESS = {"day": "pd", "week": "pw", "month": "pm", "year": "py"}


def _parse_brave_results(payload: dict[str, Any]) -> list[SearchResult]:
    mapped: list[SearchResult] = []
    for item in payload.get("web", {}).get("results", []) or []:
        url = str(item.get("url") or "").strip()
        if not url:
            continue
        # Fall back to extra snippets when Brave returns no description.
        description = str(item.get("description") or "").strip()
        if not description:
            description = " ".join(item.get("extra_snippets") or []).strip()
        mapped.append(
            SearchResult(
                title=str(item.get("title") or "").strip(),
                url=url,
                description=description,
                published=item.get("page_age") or item.get("age") or None,
            )
        )
    return mapped


async def _fetch(client: httpx.AsyncClient, params: dict[str, Any], api_key: str) -> dict[str, Any]:
    try:
        response = await client.get(
            BRAVE_SEARCH_URL,
            params=params,
            headers={"Accept": "application/json", "X-Subscription-Token": api_key},
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SearchError("brave", f"HTTP {exc.response.status_code}", status_code=exc.response.status_code) from exc
    except httpx.HTTPError as exc:
        raise SearchError("brave", f"{type(exc).__name__}: {exc}") from exc
    return response.json()


async def search(
    query: str,
    *,
    max_results: int = 10,
    time_range: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[SearchResult]:
    """Brave web search, normalized to SearchResult."""
    api_key = settings.brave_api_key
    if not api_key:
        raise SearchError("brave", "BRAVE_API_KEY is not configured")

    params: dict[str, Any] = {"q": query, "count": max_results}
    if time_range in FRESHNESS:
        params["freshness"] = FRESHNESS[time_range]

    if client is None:
        async with httpx.AsyncClient(timeout=settings.search_timeout_seconds) as http:
            payload = await _fetch(http, params, api_key)
    else:
        payload = await _fetch(client, params, api_key)
    return _parse_brave_results(payload)[:max_results]
