from __future__ import annotations

import re
from dataclasses import dataclass

JS_REQUIRED_PHRASES = (
    "Please enable JavaScript",
    "JavaScript is required",
    "This site requires JavaScript",
    "Enable JavaScript to view",
    "JavaScript must be enabled",
    "Your browser does not support JavaScript",
    "Please turn on JavaScript",
    "JavaScript disabled",
)

# Capitalized menu tokens; matched case-sensitively so prose like "about" does not count.
NAV_WORDS = frozenset({"Home", "About", "Contact", "Privacy", "Terms", "Login", "Sign", "Menu"})

PAYWALL_MARKERS = (
    "subscribe to continue",
    "subscribe to read",
    "subscribers only",
    "for subscribers",
    "already a subscriber",
    "create a free account to continue",
    "sign in to continue reading",
    "this content is for members",
    "to continue reading",
    "you have reached your limit",
    "you've reached your limit",
    "free articles remaining",
)

_WORD_RE = re.compile(r"\S+")


@dataclass(frozen=True, slots=True)
class QualityThresholds:
    min_chars: int = 100
    max_nav_ratio: float = 0.3


@dataclass(frozen=True, slots=True)
class QualityVerdict:
    acceptable: bool
    reason: str | None = None
    paywalled: bool = False
    nav_ratio: float = 0.0


def navigation_ratio(content: str) -> float:
    """Share of words longer than two characters that are menu tokens."""
    words = [w.strip(".,:;|!?()[]") for w in _WORD_RE.findall(content)]
    words = [w for w in words if len(w) > 2]
    if not words:
        return 0.0
    hits = sum(1 for w in words if w in NAV_WORDS)
    return hits / len(words)


def requires_javascript(content: str) -> bool:
    return any(phrase in content for phrase in JS_REQUIRED_PHRASES)


def is_paywalled(content: str) -> bool:
    lowered = content.lower()
    return any(marker in lowered for marker in PAYWALL_MARKERS)


def assess(content: str | None, thresholds: QualityThresholds | None = None) -> QualityVerdict:
    """Judge whether extracted text is usable.

    Order: empty or too short, JavaScript notice, navigation-heavy, then
    paywall (accepted as limited). Rejected verdicts still record
    ``paywalled`` so the workflow can keep a preview as limited.
    """
    thresholds = thresholds or QualityThresholds()
    text = (content or "").strip()
    if not text:
        return QualityVerdict(acceptable=False, reason="empty")
    if len(text) < thresholds.min_chars:
        return QualityVerdict(acceptable=False, reason="too_short", paywalled=is_paywalled(text))
    if requires_javascript(text):
        return QualityVerdict(acceptable=False, reason="javascript_required")
    ratio = navigation_ratio(text)
    paywalled = is_paywalled(text)
    if ratio >= thresholds.max_nav_ratio:
        return QualityVerdict(acceptable=False, reason="navigation_heavy", paywalled=paywalled, nav_ratio=ratio)
    if paywalled:
        return QualityVerdict(acceptable=True, reason="paywall", paywalled=True, nav_ratio=ratio)
    return QualityVerdict(acceptable=True, nav_ratio=ratio)


def should_fallback(content: str | None, thresholds: QualityThresholds | None = None) -> bool:
    return not assess(content, thresholds).acceptable
