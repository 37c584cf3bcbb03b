from __future__ import annotations

import pytest

from webscout.errors import (
    BlockedSiteError,
    FetchError,
    NavigationError,
    ParseError,
    RenderError,
    describe_failure,
)
from webscout.research_core.scrape.retry import (
    COORDINATOR_POLICY,
    Action,
    RetryPolicy,
    navigation_policy,
    static_policy,
)


@pytest.mark.parametrize(
    ("error", "prefix"),
    [
        (BlockedSiteError("https://x.com/a", "on blocklist"), "blocked"),
        (FetchError("https://a.test", "slow", kind="timeout"), "timed out"),
        (FetchError("https://a.test", "refused", kind="connection_refused"), "unreachable"),
        (NavigationError("https://a.test", "dns", unrecoverable=True), "unreachable"),
        (NavigationError("https://a.test", "slow", unrecoverable=True, timed_out=True), "timed out"),
        (ParseError("https://a.test", "empty"), "no content found"),
        (RenderError("https://a.test", "evaluate failed"), "extraction failed"),
    ],
)
def test_describe_failure_distinguishes_categories(error, prefix):
    message = describe_failure(error)
    assert message.startswith(prefix)
    assert error.url in message
    assert error.user_message == message


def test_describe_failure_handles_unexpected_exceptions():
    message = describe_failure(ValueError("bad"), "https://a.test")
    assert "https://a.test" in message
    assert "ValueError" in message


def test_static_policy_retries_server_errors_with_exponential_backoff():
    policy = static_policy(retry_max=2, backoff_base=0.5)
    error = FetchError("https://a.test", "HTTP 503", kind="http_status", status_code=503)

    assert policy.decide(1, error) is Action.RETRY
    assert policy.decide(2, error) is Action.RETRY
    assert policy.decide(3, error) is Action.FAIL
    assert [policy.backoff(1), policy.backoff(2)] == [0.5, 1.0]


def test_static_policy_never_retries_client_errors_or_timeouts():
    policy = static_policy()
    assert policy.decide(1, FetchError("u", "HTTP 404", kind="http_status", status_code=404)) is Action.FAIL
    assert policy.decide(1, FetchError("u", "slow", kind="timeout")) is Action.FAIL
    assert policy.decide(1, FetchError("u", "down", kind="connect_timeout")) is Action.FAIL


def test_navigation_policy_uses_linear_delay_and_stops_on_unrecoverable():
    policy = navigation_policy(strategies=3, delay=1.0)
    recoverable = NavigationError("u", "net::ERR_ABORTED")
    assert policy.decide(1, recoverable) is Action.RETRY
    assert policy.decide(3, recoverable) is Action.FAIL
    assert [policy.backoff(1), policy.backoff(2)] == [1.0, 2.0]
    assert policy.decide(1, NavigationError("u", "dns", unrecoverable=True)) is Action.FAIL


def test_coordinator_policy_falls_back_except_for_terminal_errors():
    assert COORDINATOR_POLICY.decide(1, ParseError("u", "empty"), fallback_available=True) is Action.FALLBACK
    assert (
        COORDINATOR_POLICY.decide(1, FetchError("u", "slow", kind="timeout"), fallback_available=True)
        is Action.FALLBACK
    )
    assert (
        COORDINATOR_POLICY.decide(1, FetchError("u", "down", kind="connect_timeout"), fallback_available=True)
        is Action.FAIL
    )
    assert (
        COORDINATOR_POLICY.decide(1, FetchError("u", "no", kind="connection_refused"), fallback_available=True)
        is Action.FAIL
    )
    assert COORDINATOR_POLICY.decide(1, BlockedSiteError("u", "no"), fallback_available=True) is Action.FAIL


def test_policy_without_fallback_fails():
    policy = RetryPolicy(max_attempts=1)
    assert policy.decide(1, ParseError("u", "empty")) is Action.FAIL
    assert policy.decide(1, RuntimeError("bug"), fallback_available=True) is Action.FAIL
