from __future__ import annotations

from typing import Iterable
from urllib.parse import urlparse

from webscout.research_core.models.interfaces import ExtractionMethod
from webscout.tools.web_utils import host_matches, normalize_host

# Sites that need a rendered DOM before their content exists.
DYNAMIC_DOMAINS = (
    "google.com/maps",
    "maps.google.com",
    "reddit.com",
    "yelp.com",
    "tripadvisor.com",
    "opentable.com",
    "instagram.com",
    "facebook.com",
    "twitter.com",
    "x.com",
    "linkedin.com",
    "medium.com",
    "quora.com",
)

# Sites whose server-rendered HTML already holds the article.
STATIC_DOMAINS = (
    "old.reddit.com",
    "wikipedia.org",
    "github.com",
    "stackoverflow.com",
    "docs.python.org",
    "arxiv.org",
    "bbc.co.uk",
    "bbc.com",
    "apnews.com",
    "npr.org",
    "theguardian.com",
)

# Workflow-level routing: paywalled or script-heavy news and finance sites.
WORKFLOW_DYNAMIC_DOMAINS = (
    "wsj.com",
    "bloomberg.com",
    "ft.com",
    "nytimes.com",
    "washingtonpost.com",
    "cnbc.com",
    "marketwatch.com",
    "barrons.com",
    "forbes.com",
    "businessinsider.com",
    "finance.yahoo.com",
    "seekingalpha.com",
    "investing.com",
)

WORKFLOW_STATIC_DOMAINS = (
    "reuters.com",
    "apnews.com",
    "bbc.com",
    "bbc.co.uk",
    "npr.org",
    "theguardian.com",
    "wikipedia.org",
    "techcrunch.com",
    "theverge.com",
    "arstechnica.com",
    "github.com",
)


def _split_pattern(pattern: str) -> tuple[str, str]:
    domain, _, path = pattern.lower().partition("/")
    return domain, ("/" + path) if path else ""


def _specificity(url: str, pattern: str) -> int:
    """Length of the pattern when it matches ``url``, otherwise -1."""
    domain, path = _split_pattern(pattern)
    host = normalize_host(url)
    if not host_matches(host, domain):
        return -1
    if path and not urlparse(url).path.lower().startswith(path):
        return -1
    return len(domain) + len(path)


class MethodClassifier:
    """Host (and optional path) based choice between static and dynamic.

    The most specific matching pattern wins, so ``old.reddit.com`` can be
    static while ``reddit.com`` is dynamic.
    """

    def __init__(
        self,
        dynamic_domains: Iterable[str] = DYNAMIC_DOMAINS,
        static_domains: Iterable[str] = STATIC_DOMAINS,
        default: ExtractionMethod | None = ExtractionMethod.STATIC,
    ):
        self.dynamic_domains = tuple(dynamic_domains)
        self.static_domains = tuple(static_domains)
        self.default = default

    def classify(self, url: str) -> ExtractionMethod | None:
        best_dynamic = max((_specificity(url, p) for p in self.dynamic_domains), default=-1)
        best_static = max((_specificity(url, p) for p in self.static_domains), default=-1)
        if best_dynamic < 0 and best_static < 0:
            return self.default
        if best_dynamic > best_static:
            return ExtractionMethod.DYNAMIC
        return ExtractionMethod.STATIC


def workflow_classifier() -> MethodClassifier:
    """Unlisted hosts return None so the coordinator decides."""
    return MethodClassifier(WORKFLOW_DYNAMIC_DOMAINS, WORKFLOW_STATIC_DOMAINS, default=None)
