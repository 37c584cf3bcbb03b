"""Candidate URL selection and LLM ranking validation for the research workflow."""

from __future__ import annotations

import json
from typing import Any, Iterable

from loguru import logger
from pydantic import ValidationError

from webscout.models.schemas import UrlAnalysis
from webscout.research_core.models.interfaces import SearchResult
from webscout.tools import web_utils

FALLBACK_RELEVANCE = 0.3


def _extract_json_array(raw_text: str) -> list[Any]:
    text = raw_text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1]
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    start = text.find("[")
    end = text.rfind("]")
    if start < 0 or end <= start:
        raise json.JSONDecodeError("array not found", text, 0)
    parsed = json.loads(text[start : end + 1])
    if not isinstance(parsed, list):
        raise json.JSONDecodeError("not an array", text, 0)
    return parsed


class URLSelector:
    """Picks which search results to visit and in what order."""

    def __init__(self, blocked_domains: Iterable[str]):
        self.blocked_domains = frozenset(blocked_domains)

    def is_blocked(self, url: str) -> bool:
        return web_utils.is_blocked_domain(url, self.blocked_domains)

    def select_candidates(self, results: list[SearchResult], max_urls: int = 5) -> list[str]:
        """Unique (by canonical URL), valid, non-blocklisted URLs in discovery order."""
        selected: list[str] = []
        seen: set[str] = set()
        for result in results:
            url = (result.url or "").strip()
            if not web_utils.is_valid_url(url):
                continue
            if self.is_blocked(url):
                logger.debug(f"Skipping blocklisted search result {url}")
                continue
            key = web_utils.canonical_url(url)
            if key in seen:
                continue
            seen.add(key)
            selected.append(url)
            if len(selected) >= max_urls:
                break
        return selected

    @staticmethod
    def fallback_ranking(candidates: list[str]) -> list[UrlAnalysis]:
        return [
            UrlAnalysis(
                url=url,
                priority=i,
                relevance_score=FALLBACK_RELEVANCE,
                reasoning="Ranking unavailable; using discovery order",
            )
            for i, url in enumerate(candidates, start=1)
        ]

    def parse_ranking(self, raw_text: str, candidates: list[str]) -> list[UrlAnalysis]:
        """Validate a model ranking against the candidates.

        Unknown URLs are dropped, duplicates keep their first entry, candidates
        the model left out are appended in discovery order, and priorities are
        renumbered 1..N. Falls back to discovery order when nothing usable
        comes back.
        """
        try:
            entries = _extract_json_array(raw_text)
        except json.JSONDecodeError as exc:
            logger.warning(f"URL ranking was not a JSON array ({exc.msg}); using discovery order")
            return self.fallback_ranking(candidates)

        by_key = {web_utils.canonical_url(url): url for url in candidates}
        ranked: list[UrlAnalysis] = []
        seen: set[str] = set()
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            try:
                analysis = UrlAnalysis.model_validate(entry)
            except ValidationError as exc:
                logger.debug(f"Dropping invalid ranking entry {entry!r}: {exc.error_count()} errors")
                continue
            key = web_utils.canonical_url(analysis.url)
            if key not in by_key or key in seen:
                continue
            seen.add(key)
            ranked.append(analysis.model_copy(update={"url": by_key[key]}))

        if not ranked:
            return self.fallback_ranking(candidates)

        ranked.sort(key=lambda item: item.priority)
        for url in candidates:
            if web_utils.canonical_url(url) not in seen:
                ranked.append(
                    UrlAnalysis(
                        url=url,
                        priority=len(ranked) + 1,
                        relevance_score=FALLBACK_RELEVANCE,
                        reasoning="Not ranked by model",
                    )
                )
        return [item.model_copy(update={"priority": i}) for i, item in enumerate(ranked, start=1)]
