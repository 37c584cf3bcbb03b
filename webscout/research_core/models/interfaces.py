from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

ImageKind = Literal["featured", "content"]
ContentType = Literal["article", "reviews", "discussion", "listing", "general"]


class ExtractionMethod(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"

    @property
    def other(self) -> "ExtractionMethod":
        return ExtractionMethod.DYNAMIC if self is ExtractionMethod.STATIC else ExtractionMethod.STATIC


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ImageRef:
    url: str
    alt: str = ""
    kind: ImageKind = "content"


@dataclass(frozen=True, slots=True)
class ExtractionOptions:
    """Caller options; also the options half of the cache key."""

    max_length: int | None = None
    include_images: bool = False
    block_resources: bool = False

    @classmethod
    def for_summarization(cls, max_length: int = 4000) -> "ExtractionOptions":
        return cls(max_length=max_length, include_images=False, block_resources=True)

    @classmethod
    def for_analysis(cls, max_length: int = 10000) -> "ExtractionOptions":
        return cls(max_length=max_length, include_images=True, block_resources=False)


@dataclass(frozen=True, slots=True)
class ExtractedDocument:
    url: str
    title: str
    content: str
    extraction_method: ExtractionMethod
    author: str | None = None
    publish_date: str | None = None
    description: str | None = None
    images: tuple[ImageRef, ...] = ()
    extracted_at: datetime = field(default_factory=_utc_now)
    truncated: bool = False
    final_url: str | None = None
    content_type: ContentType = "general"
    site_rule: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "author": self.author,
            "publish_date": self.publish_date,
            "description": self.description,
            "images": [{"url": img.url, "alt": img.alt, "kind": img.kind} for img in self.images],
            "extraction_method": self.extraction_method.value,
            "extracted_at": self.extracted_at.isoformat(),
            "truncated": self.truncated,
            "final_url": self.final_url,
            "content_type": self.content_type,
            "site_rule": self.site_rule,
        }


@dataclass(slots=True)
class PartialDocument:
    """What a dynamic site rule pulls out of a rendered page."""

    content: str
    title: str = ""
    author: str | None = None
    publish_date: str | None = None
    description: str | None = None
    images: list[ImageRef] = field(default_factory=list)
    content_type: ContentType = "general"


@dataclass(frozen=True, slots=True)
class BatchItem:
    url: str
    success: bool
    data: ExtractedDocument | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SearchResult:
    title: str
    url: str
    description: str = ""
    published: str | None = None
