"""Retry policy for feed fetches."""

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)


logger = structlog.get_logger(__name__)

# Transport-level failures only; HTTP error statuses and parse errors are final
RETRYABLE_FETCH_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "feed_fetch_retrying",
        attempt=retry_state.attempt_number,
        wait_seconds=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
        error=str(error),
    )


def fetch_retrying(attempts: int) -> AsyncRetrying:
    """Build the retry controller used around a single feed fetch.

    Args:
        attempts: Total attempts including the first (1 disables retry)

    Returns:
        tenacity AsyncRetrying iterator; re-raises the last error
    """
    return AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(RETRYABLE_FETCH_ERRORS),
        before_sleep=_log_before_sleep,
        reraise=True,
    )
