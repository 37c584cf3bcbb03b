"""Exception taxonomy for extraction, task storage and reasoning."""

from __future__ import annotations

from typing import Literal

FailureCategory = Literal["blocked", "timed_out", "unreachable", "no_content", "failed"]

FetchFailureKind = Literal[
    "http_status",
    "timeout",
    "connect_timeout",
    "connection_refused",
    "dns",
    "network",
]


class ExtractionError(Exception):
    """Base class for every per-URL extraction failure."""

    category: FailureCategory = "failed"

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url
        self.message = message

    @property
    def user_message(self) -> str:
        return describe_failure(self)


class FetchError(ExtractionError):
    """Plain HTTP fetch failed: non-2xx status, DNS failure, timeout, refused connection."""

    def __init__(
        self,
        url: str,
        message: str,
        *,
        kind: FetchFailureKind = "network",
        status_code: int | None = None,
    ):
        super().__init__(url, message)
        self.kind = kind
        self.status_code = status_code

    @property
    def category(self) -> FailureCategory:  # type: ignore[override]
        if self.kind in ("timeout", "connect_timeout"):
            return "timed_out"
        if self.kind in ("connection_refused", "dns"):
            return "unreachable"
        return "failed"

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    @property
    def is_unreachable(self) -> bool:
        """True for connection-level failures that prove the host is down."""
        return self.kind in ("connect_timeout", "connection_refused")


class NavigationError(ExtractionError):
    """The rendering engine could not navigate to the page."""

    def __init__(
        self,
        url: str,
        message: str,
        *,
        unrecoverable: bool = False,
        timed_out: bool = False,
    ):
        super().__init__(url, message)
        self.unrecoverable = unrecoverable
        self.timed_out = timed_out

    @property
    def category(self) -> FailureCategory:  # type: ignore[override]
        if self.timed_out:
            return "timed_out"
        if self.unrecoverable:
            return "unreachable"
        return "failed"


class RenderError(ExtractionError):
    """The page loaded but could not be evaluated or read."""


class ParseError(ExtractionError):
    """Extraction produced no usable content after all fallbacks."""

    category: FailureCategory = "no_content"


class BlockedSiteError(ExtractionError):
    """Domain is on the blocklist or the URL is not safe to fetch."""

    category: FailureCategory = "blocked"


class TaskStoreError(Exception):
    """Base class for agent task store failures."""


class CapacityError(TaskStoreError):
    def __init__(self, max_tasks: int):
        self.max_tasks = max_tasks
        super().__init__(f"Task store is full ({max_tasks} live tasks); end a task before starting another")


class NotFoundError(TaskStoreError, LookupError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class LLMError(Exception):
    """The reasoning capability failed to produce a completion."""

    def __init__(self, message: str, *, model: str | None = None):
        super().__init__(message)
        self.model = model


class SearchError(RuntimeError):
    """A web search provider is unconfigured or its request failed."""

    def __init__(self, provider: str, message: str, *, status_code: int | None = None):
        super().__init__(f"{provider} search failed: {message}")
        self.provider = provider
        self.status_code = status_code


_CATEGORY_MESSAGES: dict[str, str] = {
    "blocked": "blocked: {url} is on the blocklist or not allowed ({detail})",
    "timed_out": "timed out: {url} did not respond in time ({detail})",
    "unreachable": "unreachable: {url} could not be reached ({detail})",
    "no_content": "no content found: {url} had no readable content ({detail})",
    "failed": "extraction failed for {url} ({detail})",
}


def describe_failure(exc: BaseException, url: str | None = None) -> str:
    """Human-readable message separating transient from structural failures."""
    if isinstance(exc, ExtractionError):
        template = _CATEGORY_MESSAGES.get(exc.category, _CATEGORY_MESSAGES["failed"])
        return template.format(url=url or exc.url, detail=exc.message)
    target = url or "request"
    return f"extraction failed for {target} ({type(exc).__name__}: {exc})"
