from __future__ import annotations

import json

from webscout.agents.orchestrator import clean_search_query
from webscout.agents.url_selector import FALLBACK_RELEVANCE, URLSelector
from webscout.research_core.models.interfaces import SearchResult

CANDIDATES = ["https://a.example/1", "https://b.example/2", "https://c.example/3"]


def _result(url: str) -> SearchResult:
    return SearchResult(title=url, url=url)


def test_select_candidates_dedupes_and_skips_blocked_and_invalid():
    selector = URLSelector({"facebook.com"})
    results = [
        _result("https://a.example/1#comments"),
        _result("https://A.example/1"),
        _result("https://www.facebook.com/acme"),
        _result("ftp://files.example/x"),
        _result("https://b.example/2"),
        _result("https://c.example/3"),
    ]

    assert selector.select_candidates(results, max_urls=2) == ["https://a.example/1#comments", "https://b.example/2"]


def test_parse_ranking_orders_by_priority_and_renumbers():
    raw = json.dumps(
        [
            {"url": "https://c.example/3", "priority": 1, "relevance_score": 0.9, "reasoning": "primary"},
            {"url": "https://a.example/1", "priority": 4, "relevance_score": 0.5},
        ]
    )
    ranking = URLSelector(set()).parse_ranking(raw, CANDIDATES)

    assert [item.url for item in ranking] == ["https://c.example/3", "https://a.example/1", "https://b.example/2"]
    assert [item.priority for item in ranking] == [1, 2, 3]
    assert ranking[2].relevance_score == FALLBACK_RELEVANCE


def test_parse_ranking_drops_unknown_duplicate_and_invalid_entries():
    raw = """```json
    [
      {"url": "https://evil.example/", "priority": 1, "relevance_score": 1.0},
      {"url": "https://b.example/2", "priority": 1, "relevance_score": 0.8},
      {"url": "https://b.example/2", "priority": 2, "relevance_score": 0.1},
      {"url": "https://a.example/1", "priority": 0, "relevance_score": 2.0},
      "not an object"
    ]
    ```"""
    ranking = URLSelector(set()).parse_ranking(raw, CANDIDATES)

    assert [item.url for item in ranking] == ["https://b.example/2", "https://a.example/1", "https://c.example/3"]
    assert ranking[0].relevance_score == 0.8


def test_unparsable_ranking_falls_back_to_discovery_order():
    ranking = URLSelector(set()).parse_ranking("I think the first one is best.", CANDIDATES)

    assert [item.url for item in ranking] == CANDIDATES
    assert [item.priority for item in ranking] == [1, 2, 3]
    assert all(item.relevance_score == FALLBACK_RELEVANCE for item in ranking)


def test_clean_search_query_strips_labels_and_quotes():
    assert clean_search_query('"Query: acme corp earnings"') == "acme corp earnings"
    assert clean_search_query("\n\n  search query: 'rust async runtimes'\nextra") == "rust async runtimes"
    assert clean_search_query("   ") == ""
