from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from webscout.research_core.models.interfaces import ExtractedDocument


class WorkflowStep(str, Enum):
    INITIALIZED = "initialized"
    SEARCHING = "searching"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"


# Memory keys the workflow reads and writes.
GOAL = "goal"
SEARCH_QUERY = "search_query"
SEARCH_RESULTS = "search_results"
URLS_TO_VISIT = "urls_to_visit"
URL_ANALYSIS = "url_analysis"
EXTRACTED_CONTENT = "extracted_content"
FAILED_URLS = "failed_urls"
EXTRACTION_ERRORS = "extraction_errors"
CURRENT_STEP = "current_step"
FINAL_SYNTHESIS = "final_synthesis"
ERROR = "error"


@dataclass(slots=True)
class AgentTask:
    task_id: str
    created: float
    last_accessed: float
    options: dict[str, Any] = field(default_factory=dict)
    memory: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TaskStatus:
    task_id: str
    current_step: str
    memory_keys: tuple[str, ...]
    created_at: datetime
    last_accessed: datetime


@dataclass(frozen=True, slots=True)
class ExtractedSource:
    document: ExtractedDocument
    priority: int
    relevance_score: float
    limited: bool = False


@dataclass(slots=True)
class WorkflowResult:
    task_id: str
    status: WorkflowStep
    final_synthesis: str | None = None
    sources: list[ExtractedSource] = field(default_factory=list)
    failed_urls: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is WorkflowStep.COMPLETED
