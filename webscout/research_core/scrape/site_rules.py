from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Protocol, Sequence
from urllib.parse import urlparse

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from webscout.research_core.extract.service import normalize_text
from webscout.research_core.models.interfaces import PartialDocument
from webscout.tools.web_utils import host_matches, normalize_host

MIN_GENERIC_BLOCK_CHARS = 100
EARLY_STOP_CHARS = 500
HIGH_PRIORITY_SELECTORS = 10
MIN_FALLBACK_TEXT_CHARS = 20
MAX_LISTING_REVIEWS = 5
MAX_REVIEWS = 10
MAX_COMMENTS = 10

GENERIC_SELECTORS = (
    '[class*="menu"]',
    '[class*="hours"]',
    '[class*="contact"]',
    '[class*="about"]',
    '[class*="location"]',
    '[class*="address"]',
    '[data-testid="serp-ia-card"]',
    '[class*="search-result"]',
    '[class*="business"]',
    '[class*="restaurant"]',
    "article",
    "main",
    '[role="main"]',
    '[data-testid*="post-content"]',
    '[data-testid*="content"]',
    '[data-testid*="article"]',
    ".story-body",
    ".articleBody",
    ".story-content",
    ".InlineStory-container",
    ".ArticleBody-articleBody",
    ".story-text",
    ".post-content-body",
    ".entry-content",
    ".article-content",
    ".article-body",
    ".content:not(.nav):not(.menu):not(.header):not(.footer)",
    ".main-content:not(.sidebar)",
    "#content:not(#nav):not(#menu)",
    ".post-content:not(.meta)",
    ".text-content",
    ".Post",
    '[data-testid="post-content"] .md',
    ".content",
    ".main-content",
    "#content",
)

_GENERIC_NAV_RE = re.compile(
    r"^(Home|About|Contact|Login|Menu|Browse|Search|News|Sports|Business|World|Markets"
    r"|Politics|Technology|Health|Sign|Subscribe|Follow|Share|More)$",
    re.IGNORECASE,
)

HEAVY_LISTING_DOMAINS = ("yelp.com", "tripadvisor.com")

GATHER_GENERIC_JS = """
(selectors) => {
  const text = (el) => ((el && (el.innerText || el.textContent)) || '').trim();
  const meta = (sel) => {
    const el = document.querySelector(sel);
    return el ? (el.getAttribute('content') || '').trim() : '';
  };
  const candidates = [];
  selectors.forEach((selector, index) => {
    let nodes = [];
    try { nodes = document.querySelectorAll(selector); } catch (e) { return; }
    nodes.forEach((el) => {
      const t = text(el);
      if (t.length > 100) candidates.push({ index, text: t });
    });
  });
  const paragraphs = Array.from(
    document.querySelectorAll('p, h1, h2, h3, h4, .comment, [data-testid*="comment"]')
  ).map(text).filter((t) => t.length > 20 && !/^(Advertisement|Cookie|Privacy|Skip|Sign|Log)/i.test(t));
  const timeEl = document.querySelector('time[datetime]');
  const authorEl = document.querySelector('[data-testid*="author"], .author, [rel="author"]');
  return {
    title: meta('meta[property="og:title"]') || text(document.querySelector('h1')) || document.title || '',
    description: meta('meta[name="description"]') || meta('meta[property="og:description"]'),
    author: meta('meta[name="author"]') || text(authorEl),
    publishDate: (timeEl && timeEl.getAttribute('datetime')) || meta('meta[property="article:published_time"]'),
    isArticle: !!document.querySelector('article') || meta('meta[property="og:type"]') === 'article',
    candidates,
    paragraphs: paragraphs.slice(0, 80),
    bodyText: text(document.body),
  };
}
"""

GATHER_MAPS_JS = """
() => {
  const text = (sel) => { const el = document.querySelector(sel); return el ? (el.innerText || el.textContent || '').trim() : ''; };
  const reviews = Array.from(document.querySelectorAll('[data-review-id], .jftiEf')).map((r) => {
    const pick = (sels) => { for (const s of sels) { const el = r.querySelector(s); if (el && el.textContent.trim()) return el.textContent.trim(); } return ''; };
    const star = r.querySelector('[aria-label*="star"]');
    return { text: pick(['.wiI7pd', '.MyEned']), author: pick(['.d4r55', '.NuIpR']), rating: star ? star.getAttribute('aria-label') : '' };
  });
  const website = document.querySelector('[data-item-id="authority"]');
  return {
    name: text('h1[data-attrid="title"]') || text('h1'),
    rating: text('[data-value="Overall rating"]') || text('.MW4etd'),
    address: text('[data-item-id="address"]') || text('.Z1hOCe'),
    phone: text('[data-item-id*="phone"]'),
    website: website ? (website.href || website.textContent.trim()) : '',
    reviews,
  };
}
"""

GATHER_REVIEWS_JS = """
() => {
  const text = (el) => ((el && (el.innerText || el.textContent)) || '').trim();
  const first = (sels) => { for (const s of sels) { const el = document.querySelector(s); if (text(el)) return text(el); } return ''; };
  const reviewNodes = document.querySelectorAll(
    '[data-testid="serp-ia-card"], [data-review-id], [data-automation="reviewCard"], .review, [class*="review__"], [class*="reviewCard"]'
  );
  const reviews = Array.from(reviewNodes).map((r) => {
    const body = r.querySelector('p, q, [class*="comment"], [class*="text"]');
    const author = r.querySelector('[class*="user-passport"] a, [class*="author"], .username, a[href*="/user"]');
    const star = r.querySelector('[aria-label*="star"], [aria-label*="rating"]');
    return { text: text(body) || text(r), author: text(author), rating: star ? star.getAttribute('aria-label') : '' };
  });
  return {
    name: first(['h1', '[data-testid="business-name"]']),
    rating: first(['[aria-label*="star rating"]', '[data-testid="rating"]', '[class*="rating"]']),
    address: first(['address', '[class*="address"]']),
    phone: first(['a[href^="tel:"]', '[class*="phone"]']),
    website: '',
    reviews,
  };
}
"""

GATHER_DISCUSSION_JS = """
() => {
  const text = (el) => ((el && (el.innerText || el.textContent)) || '').trim();
  const first = (sels) => { for (const s of sels) { const el = document.querySelector(s); if (text(el)) return text(el); } return ''; };
  const comments = Array.from(
    document.querySelectorAll('shreddit-comment, [data-testid="comment"], .Comment, .thing.comment')
  ).map((c) => ({
    text: text(c.querySelector('.md, [slot="comment"], p')),
    author: c.getAttribute('author') || text(c.querySelector('[data-testid="comment_author_link"], .author')),
  }));
  return {
    title: first(['h1', '[data-testid="post-content"] h3', 'a.title', '.title']),
    subreddit: first(['[data-testid="subreddit-name"]', '.subreddit', '.redditname']),
    post: first(['[data-testid="post-content"] .md', 'shreddit-post [slot="text-body"]', '.usertext-body .md', '.expando .md']),
    comments,
  };
}
"""


def generic_nav_ratio(text: str) -> float:
    words = text.split()
    if not words:
        return 0.0
    return sum(1 for w in words if _GENERIC_NAV_RE.match(w)) / len(words)


def choose_generic_content(
    candidates: Sequence[dict[str, Any]],
    paragraphs: Sequence[str] = (),
    body_text: str = "",
    *,
    max_nav_ratio: float = 0.2,
) -> str:
    """Pick the main block from selector candidates in priority order.

    Candidates carry ``index`` (position in GENERIC_SELECTORS) and ``text``.
    Short or navigation-heavy blocks are rejected, the longest survivor wins,
    and a block over 500 chars from a top-priority selector ends the search.
    """
    best = ""
    for candidate in candidates:
        text = str(candidate.get("text") or "").strip()
        if len(text) <= MIN_GENERIC_BLOCK_CHARS:
            continue
        if generic_nav_ratio(text) > max_nav_ratio:
            continue
        if len(text) > len(best):
            best = text
            if len(text) > EARLY_STOP_CHARS and int(candidate.get("index", 0)) < HIGH_PRIORITY_SELECTORS:
                break
    if best:
        return normalize_text(best)

    kept = [p.strip() for p in paragraphs if len(p.strip()) > MIN_FALLBACK_TEXT_CHARS]
    if kept:
        return normalize_text("\n\n".join(dict.fromkeys(kept)))
    return normalize_text(body_text or "")


def compose_listing(data: dict[str, Any], *, max_reviews: int = MAX_LISTING_REVIEWS) -> str:
    """Readable block for a business listing: name, contact fields, then reviews."""
    name = str(data.get("name") or "").strip()
    lines = [name, ""] if name else []
    for label, key in (("Rating", "rating"), ("Address", "address"), ("Phone", "phone"), ("Website", "website")):
        value = str(data.get(key) or "").strip()
        if value:
            lines.append(f"{label}: {value}")
    reviews = [r for r in data.get("reviews") or [] if str(r.get("text") or "").strip()][:max_reviews]
    if reviews:
        lines.extend(["", "Recent Reviews:"])
        for i, review in enumerate(reviews, start=1):
            author = str(review.get("author") or "").strip() or "Anonymous"
            rating = str(review.get("rating") or "").strip()
            suffix = f" ({rating})" if rating else ""
            lines.append(f"{i}. {author}{suffix}: {str(review['text']).strip()}")
    return "\n".join(lines).strip()


def compose_discussion(data: dict[str, Any], *, max_comments: int = MAX_COMMENTS) -> str:
    title = str(data.get("title") or "").strip()
    parts = [title] if title else []
    subreddit = str(data.get("subreddit") or "").strip()
    if subreddit:
        parts.append(f"Subreddit: {subreddit}")
    post = str(data.get("post") or "").strip()
    if post:
        parts.append(f"Post: {post}")
    comments = [
        c for c in data.get("comments") or [] if len(str(c.get("text") or "").strip()) > MIN_FALLBACK_TEXT_CHARS
    ][:max_comments]
    if comments:
        lines = ["Top Comments:"]
        for i, comment in enumerate(comments, start=1):
            author = str(comment.get("author") or "").strip() or "Anonymous"
            lines.append(f"{i}. {author}: {str(comment['text']).strip()}")
        parts.append("\n".join(lines))
    return "\n\n".join(parts).strip()


class ExtractionStrategy(Protocol):
    async def extract(self, page: Any, url: str) -> PartialDocument | None:
        """Return None to defer to the generic strategy."""
        ...


async def _wait_for_any(page: Any, selectors: Sequence[str], timeout_ms: int) -> bool:
    for selector in selectors:
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightError:
            continue
    return False


class GenericStrategy:
    def __init__(self, *, max_nav_ratio: float = 0.2):
        self.max_nav_ratio = max_nav_ratio

    async def extract(self, page: Any, url: str) -> PartialDocument | None:
        data = await page.evaluate(GATHER_GENERIC_JS, list(GENERIC_SELECTORS))
        content = choose_generic_content(
            data.get("candidates") or [],
            data.get("paragraphs") or [],
            data.get("bodyText") or "",
            max_nav_ratio=self.max_nav_ratio,
        )
        return PartialDocument(
            content=content,
            title=str(data.get("title") or "").strip(),
            author=(data.get("author") or None),
            publish_date=(data.get("publishDate") or None),
            description=(data.get("description") or None),
            content_type="article" if data.get("isArticle") else "general",
        )


class ListingStrategy:
    """Google Maps business pages."""

    async def extract(self, page: Any, url: str) -> PartialDocument | None:
        await _wait_for_any(page, ['[data-section-id="overview"]', "h1"], 10000)
        data = await page.evaluate(GATHER_MAPS_JS)
        if not str(data.get("name") or "").strip():
            return None
        return PartialDocument(
            content=compose_listing(data),
            title=str(data["name"]).strip(),
            content_type="listing",
        )


class ReviewsStrategy:
    """Review aggregators (Yelp, TripAdvisor)."""

    ANCHORS = (
        '[data-testid="serp-ia-card"]',
        "[data-review-id]",
        '[data-automation="reviewCard"]',
        ".review",
    )

    async def extract(self, page: Any, url: str) -> PartialDocument | None:
        if not await _wait_for_any(page, self.ANCHORS, 5000):
            logger.debug(f"No review anchors on {url}; deferring to generic extraction")
            return None
        data = await page.evaluate(GATHER_REVIEWS_JS)
        content = compose_listing(data, max_reviews=MAX_REVIEWS)
        if not data.get("reviews") or not content:
            return None
        return PartialDocument(
            content=content,
            title=str(data.get("name") or "").strip(),
            content_type="reviews",
        )


class DiscussionStrategy:
    """Reddit threads, old and new layouts."""

    ANCHORS = ('[data-testid="post-content"]', "shreddit-post", ".Post", ".thing", "h1")

    async def extract(self, page: Any, url: str) -> PartialDocument | None:
        await _wait_for_any(page, self.ANCHORS, 5000)
        data = await page.evaluate(GATHER_DISCUSSION_JS)
        if not str(data.get("title") or "").strip():
            return None
        return PartialDocument(
            content=compose_discussion(data),
            title=str(data["title"]).strip(),
            content_type="discussion",
        )


@dataclass(frozen=True, slots=True)
class SiteRule:
    name: str
    matches: Callable[[str], bool]
    strategy: ExtractionStrategy


def _is_maps(url: str) -> bool:
    host = normalize_host(url)
    if host_matches(host, "maps.google.com"):
        return True
    return host_matches(host, "google.com") and urlparse(url).path.startswith("/maps")


def _domain_matcher(*domains: str) -> Callable[[str], bool]:
    def matches(url: str) -> bool:
        host = normalize_host(url)
        return any(host_matches(host, d) for d in domains)

    return matches


def is_heavy_listing_site(url: str) -> bool:
    return _domain_matcher(*HEAVY_LISTING_DOMAINS)(url)


def default_rules(*, generic_max_nav_ratio: float = 0.2) -> list[SiteRule]:
    return [
        SiteRule("maps", _is_maps, ListingStrategy()),
        SiteRule("reviews", _domain_matcher(*HEAVY_LISTING_DOMAINS), ReviewsStrategy()),
        SiteRule("discussion", _domain_matcher("reddit.com"), DiscussionStrategy()),
        SiteRule("generic", lambda _url: True, GenericStrategy(max_nav_ratio=generic_max_nav_ratio)),
    ]


def select_rule(url: str, rules: Sequence[SiteRule]) -> SiteRule:
    for rule in rules:
        if rule.matches(url):
            return rule
    raise LookupError(f"No site rule matches {url}")
