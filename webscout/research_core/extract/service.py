from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urljoin

import trafilatura
from bs4 import BeautifulSoup, Tag
from loguru import logger
from readability import Document

from webscout.research_core.models.interfaces import ContentType, ImageRef

MIN_BLOCK_CHARS = 100
MIN_PARAGRAPH_CHARS = 20
MAX_IMAGES = 10

CONTENT_SELECTORS = (
    "article",
    ".content",
    ".post-content",
    ".entry-content",
    ".article-content",
    ".story-body",
    ".post-body",
    "main",
    "#content",
    ".main-content",
)

BLOCK_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "pre"]
STRIP_TAGS = ["script", "style", "noscript", "template", "svg", "iframe"]


def normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def truncate_intelligently(text: str, max_length: int | None) -> tuple[str, bool]:
    """Cut ``text`` to ``max_length`` keeping the first and last paragraphs.

    The middle is filled up to what the budget allows and an ellipsis marks
    the cut. When both ends do not fit, only the (possibly cut) head is kept.
    Returns the text and whether it was truncated.
    """
    if not max_length or max_length <= 0 or len(text) <= max_length:
        return text, False

    paragraphs = [p for p in text.split("\n\n") if p.strip()]
    if len(paragraphs) <= 1:
        return text[: max(max_length - 3, 0)] + "...", True

    first, last = paragraphs[0], paragraphs[-1]
    remaining = max_length - len(first) - len(last) - 20
    if remaining > 100:
        middle = "\n\n".join(paragraphs[1:-1])
        parts = [first]
        if middle:
            if len(middle) <= remaining:
                parts.append(middle)
            else:
                parts.append(middle[: remaining - 10] + "...")
        parts.append(last)
        return "\n\n".join(parts), True

    if len(first) > max_length - 3:
        return first[: max(max_length - 3, 0)] + "...", True
    return first, True


def _block_text(node: Tag) -> str:
    blocks = [el.get_text(" ", strip=True) for el in node.find_all(BLOCK_TAGS)]
    blocks = [b for b in blocks if b]
    if blocks:
        return "\n\n".join(blocks)
    return node.get_text("\n", strip=True)


def _meta(soup: BeautifulSoup, *, name: str | None = None, prop: str | None = None) -> str | None:
    attrs = {"name": name} if name else {"property": prop}
    tag = soup.find("meta", attrs=attrs)
    if isinstance(tag, Tag):
        value = str(tag.get("content") or "").strip()
        if value:
            return value
    return None


@dataclass(slots=True)
class ParsedPage:
    title: str
    content: str
    method: str
    author: str | None = None
    publish_date: str | None = None
    description: str | None = None
    images: list[ImageRef] = field(default_factory=list)
    content_type: ContentType = "general"


class ExtractService:
    """Readable-content parser with an ordered fallback chain.

    readability, then trafilatura, then the first content selector holding a
    substantial block, then every paragraph longer than 20 characters.
    """

    def parse(self, *, url: str, raw_html: str, include_images: bool = False) -> ParsedPage | None:
        soup = BeautifulSoup(raw_html, "html.parser")
        for tag in soup.find_all(STRIP_TAGS):
            tag.decompose()

        readability_text, readability_title = self._extract_readability(raw_html)
        methods = (
            ("readability", lambda: readability_text),
            ("trafilatura", lambda: self._extract_trafilatura(raw_html)),
            ("selectors", lambda: self._extract_selectors(soup)),
        )
        for method, fn in methods:
            content = normalize_text(fn())
            if len(content) > MIN_BLOCK_CHARS:
                break
        else:
            method = "paragraphs"
            content = normalize_text(self._extract_paragraphs(soup))

        if not content:
            return None

        return ParsedPage(
            title=self._title(soup, readability_title),
            content=content,
            method=method,
            author=self._author(soup),
            publish_date=self._publish_date(soup),
            description=self._description(soup),
            images=self._images(soup, url) if include_images else [],
            content_type=self._content_type(soup),
        )

    def _extract_readability(self, raw_html: str) -> tuple[str, str | None]:
        try:
            doc = Document(raw_html)
            summary_html = doc.summary(html_partial=True)
            title = doc.short_title()
        except Exception as exc:
            logger.debug(f"readability could not parse page: {exc}")
            return "", None
        soup = BeautifulSoup(summary_html, "html.parser")
        if title in ("", "[no-title]"):
            title = None
        return _block_text(soup), title

    def _extract_trafilatura(self, raw_html: str) -> str:
        extracted = trafilatura.extract(raw_html, output_format="txt", include_comments=False)
        if not isinstance(extracted, str):
            return ""
        return extracted.replace("\n", "\n\n")

    def _extract_selectors(self, soup: BeautifulSoup) -> str:
        for selector in CONTENT_SELECTORS:
            node = soup.select_one(selector)
            if node is None:
                continue
            text = normalize_text(_block_text(node))
            if len(text) > MIN_BLOCK_CHARS:
                return text
        return ""

    def _extract_paragraphs(self, soup: BeautifulSoup) -> str:
        paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
        return "\n\n".join(p for p in paragraphs if len(p) > MIN_PARAGRAPH_CHARS)

    def _title(self, soup: BeautifulSoup, readability_title: str | None) -> str:
        og_title = _meta(soup, prop="og:title")
        if og_title:
            return og_title
        if readability_title:
            return readability_title.strip()
        h1 = soup.find("h1")
        if isinstance(h1, Tag) and h1.get_text(strip=True):
            return h1.get_text(" ", strip=True)
        if soup.title and soup.title.get_text(strip=True):
            return soup.title.get_text(" ", strip=True)
        return "Untitled"

    def _author(self, soup: BeautifulSoup) -> str | None:
        found = _meta(soup, name="author") or _meta(soup, prop="article:author")
        if found:
            return found
        for selector in ('[rel="author"]', ".author"):
            node = soup.select_one(selector)
            if node is not None and node.get_text(strip=True):
                return node.get_text(" ", strip=True)
        return None

    def _publish_date(self, soup: BeautifulSoup) -> str | None:
        node = soup.select_one("time[datetime]")
        if node is not None and str(node.get("datetime") or "").strip():
            return str(node["datetime"]).strip()
        found = _meta(soup, prop="article:published_time") or _meta(soup, name="date")
        if found:
            return found
        node = soup.select_one('[itemprop="datePublished"]')
        if node is not None:
            value = str(node.get("content") or node.get("datetime") or node.get_text(strip=True))
            return value.strip() or None
        return None

    def _description(self, soup: BeautifulSoup) -> str | None:
        return _meta(soup, name="description") or _meta(soup, prop="og:description")

    def _images(self, soup: BeautifulSoup, base_url: str) -> list[ImageRef]:
        images: list[ImageRef] = []
        seen: set[str] = set()
        featured = _meta(soup, prop="og:image")
        if featured:
            resolved = urljoin(base_url, featured)
            images.append(ImageRef(url=resolved, alt="Featured image", kind="featured"))
            seen.add(resolved)
        for img in soup.select("article img, .content img, main img"):
            src = str(img.get("src") or "").strip()
            if not src or src.startswith("data:"):
                continue
            resolved = urljoin(base_url, src)
            if resolved in seen:
                continue
            seen.add(resolved)
            images.append(ImageRef(url=resolved, alt=str(img.get("alt") or ""), kind="content"))
        return images[:MAX_IMAGES]

    def _content_type(self, soup: BeautifulSoup) -> ContentType:
        og_type = (_meta(soup, prop="og:type") or "").lower()
        if og_type == "article" or soup.find("article") is not None:
            return "article"
        return "general"
