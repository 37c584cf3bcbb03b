from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from webscout.errors import BlockedSiteError, ExtractionError, FetchError, NavigationError


class Action(str, Enum):
    RETRY = "retry"
    FALLBACK = "fallback"
    FAIL = "fail"


def is_transient(error: BaseException) -> bool:
    """Failures worth repeating with the same method."""
    if isinstance(error, FetchError):
        return error.is_server_error or error.kind == "network"
    if isinstance(error, NavigationError):
        return not error.unrecoverable and not error.timed_out
    return False


def is_terminal(error: BaseException) -> bool:
    """Failures where no other attempt, by any method, can help."""
    if isinstance(error, BlockedSiteError):
        return True
    if isinstance(error, FetchError):
        return error.is_unreachable
    return False


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Pure decision table for a failed attempt.

    ``max_attempts`` counts the first attempt. Backoff is either exponential
    (``base * 2 ** (attempt - 1)``) or linear (``base * attempt``).
    """

    max_attempts: int = 3
    backoff_base: float = 0.5
    exponential: bool = True

    def decide(
        self,
        attempt: int,
        error: BaseException,
        *,
        fallback_available: bool = False,
    ) -> Action:
        if is_terminal(error):
            return Action.FAIL
        if is_transient(error) and attempt < self.max_attempts:
            return Action.RETRY
        if fallback_available and isinstance(error, ExtractionError):
            return Action.FALLBACK
        return Action.FAIL

    def backoff(self, attempt: int) -> float:
        if attempt < 1:
            return 0.0
        if self.exponential:
            return self.backoff_base * (2 ** (attempt - 1))
        return self.backoff_base * attempt


def static_policy(retry_max: int = 2, backoff_base: float = 0.5) -> RetryPolicy:
    return RetryPolicy(max_attempts=max(int(retry_max), 0) + 1, backoff_base=backoff_base)


def navigation_policy(strategies: int = 3, delay: float = 1.0) -> RetryPolicy:
    return RetryPolicy(max_attempts=max(strategies, 1), backoff_base=delay, exponential=False)


# Coordinator never repeats a method; it only chooses between falling back and failing.
COORDINATOR_POLICY = RetryPolicy(max_attempts=1, backoff_base=0.0)
