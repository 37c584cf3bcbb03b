from __future__ import annotations

import re
from urllib.parse import quote

import httpx

from webscout.config import settings
from webscout.errors import SearchError
from webscout.research_core.models.interfaces import SearchResult

# Jina has no freshness parameter; the closest control is its time-based query hint.
TIME_HINTS = {
    "day": "past 24 hours",
    "week": "past week",
    "month": "past month",
    "year": "past year",
}

_RESULT_FIELD_RE = re.compile(
    r"\[(\d+)\]\s+(Title|URL Source|Description|Published Time):\s*(.*?)(?=\[\d+\]|$)",
    re.DOTALL,
)


def _parse_jina_search_response(text: str, max_results: int = 10) -> list[SearchResult]:
    """Parse Jina search plain text response into SearchResult objects.

    Format:
    [1] Title: ...
    [1] URL Source: ...
    [1] Description: ...

    [2] Title: ...
    ...
    """
    blocks: dict[int, dict[str, str]] = {}
    for index_str, field, value in _RESULT_FIELD_RE.findall(text):
        blocks.setdefault(int(index_str), {})[field] = value.strip()

    results: list[SearchResult] = []
    for index in sorted(blocks):
        fields = blocks[index]
        url = fields.get("URL Source", "")
        if not url:
            continue
        results.append(
            SearchResult(
                title=fields.get("Title", ""),
                url=url,
                description=fields.get("Description", ""),
                published=fields.get("Published Time") or None,
            )
        )
        if len(results) >= max_results:
            break
    return results


async def search(
    query: str,
    *,
    max_results: int = 10,
    time_range: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[SearchResult]:
    """Execute a web search using the Jina AI search API.

    API: GET https://s.jina.ai/?q=<query>, plain text response.
    """
    api_key = settings.jina_api_key
    if not api_key:
        raise SearchError("jina", "JINA_API_KEY is not configured")

    if time_range in TIME_HINTS:
        query = f"{query} {TIME_HINTS[time_range]}"
    url = f"https://s.jina.ai/?q={quote(query, safe='')}"
    headers = {
        "Authorization": f"Bearer {api_key}",
        "X-Respond-With": "no-content",
    }

    try:
        if client is not None:
            response = await client.get(url, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=settings.search_timeout_seconds) as http:
                response = await http.get(url, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SearchError("jina", f"HTTP {exc.response.status_code}", status_code=exc.response.status_code) from exc
    except httpx.HTTPError as exc:
        raise SearchError("jina", f"{type(exc).__name__}: {exc}") from exc
    return _parse_jina_search_response(response.text, max_results)
