from __future__ import annotations

import re

FOOTER_PHRASES = (
    "all rights reserved",
    "privacy policy",
    "terms of use",
    "terms of service",
    "cookie policy",
    "cookie settings",
    "manage cookies",
    "accept all cookies",
    "sign up for our newsletter",
    "subscribe to our newsletter",
    "follow us on",
    "share this article",
    "skip to main content",
    "skip to content",
    "advertisement",
    "related articles",
    "recommended for you",
    "read more:",
    "back to top",
)

_HTML_TAG_RE = re.compile(r"</?[a-zA-Z][^>]*>")
_TICKER_RE = re.compile(r"\b[A-Z]{1,5}\s*[+-]?\d+(?:\.\d+)?%")
_CAPS_RUN_RE = re.compile(r"(?:\b[A-Z][A-Z&]{1,}\b[\s|/•·-]*){6,}")
# Menu labels glued together by markup stripping, e.g. SUBSCRIBENOWHOMEMARKETS.
_LONG_CAPS_TOKEN_RE = re.compile(r"\b[A-Z]{16,}\b")


def _is_noise_line(line: str) -> bool:
    lowered = line.lower().strip()
    if not lowered:
        return False
    if len(lowered) <= 80 and any(phrase in lowered for phrase in FOOTER_PHRASES):
        return True
    tickers = _TICKER_RE.findall(line)
    return len(tickers) >= 3 and sum(len(t) for t in tickers) > len(line) * 0.4


def clean_for_synthesis(text: str) -> str:
    """Strip footer/nav boilerplate, ticker strips and leftover markup from extracted text."""
    text = _HTML_TAG_RE.sub(" ", text or "")
    text = _CAPS_RUN_RE.sub(" ", text)
    text = _LONG_CAPS_TOKEN_RE.sub(" ", text)
    lines = [line for line in text.splitlines() if not _is_noise_line(line)]
    text = "\n".join(line.strip() for line in lines)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def cap_length(text: str, budget: int) -> str:
    if budget <= 0 or len(text) <= budget:
        return text
    cut = text[:budget]
    boundary = cut.rfind(". ")
    if boundary > budget * 0.6:
        cut = cut[: boundary + 1]
    return cut.rstrip() + " ..."
