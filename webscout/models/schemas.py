from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

TimeFilter = Literal["day", "week", "month", "year"]


class TaskOptions(BaseModel):
    """Per-task workflow options supplied by the caller."""

    time_filter: TimeFilter | None = None
    max_urls: int = Field(default=5, ge=1, le=20)
    search_limit: int = Field(default=10, ge=1, le=50)
    extract_max_length: int = Field(default=4000, ge=200)


class UrlAnalysis(BaseModel):
    url: str
    priority: int = Field(ge=1)
    relevance_score: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
