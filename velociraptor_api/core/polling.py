"""
Polling Infrastructure.

Fixed-backoff polling built on tenacity, plus the before_sleep callback that
emits structured poll events. Used by the flow monitor for status, log and
result polling, where "not ready yet" is retried and every exception
raised by the poll itself propagates on the first occurrence.

Usage:
    from velociraptor_api.core.polling import poll_until

    rows = await poll_until(
        lambda: executor.execute(query, options),
        not_ready=lambda rows: not rows,
        interval=0.1,
        description="results",
        flow_id=flow_id,
    )

Events can be filtered from the JSONL log with:

    jq 'select(.extra.poll_event != null)' logs/system.jsonl
"""

import asyncio
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_result,
    stop_after_attempt,
    stop_never,
    wait_fixed,
)

from velociraptor_api.core.exceptions import PollingExhaustedError
from velociraptor_api.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def log_poll_retry(retry_state: Any, description: str = "poll") -> None:
    """Tenacity before_sleep callback that emits structured poll events.

    Args:
        retry_state: tenacity.RetryCallState instance
        description: What is being polled
    """
    elapsed_ms = None
    if retry_state.outcome_timestamp and retry_state.start_time:
        elapsed_ms = round(
            (retry_state.outcome_timestamp - retry_state.start_time) * 1000
        )

    logger.debug(
        f"Polling {description} (attempt {retry_state.attempt_number})",
        extra={
            "poll_event": "poll_retry",
            "attempt": retry_state.attempt_number,
            "elapsed_ms": elapsed_ms,
        },
    )


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    not_ready: Callable[[T], bool],
    *,
    interval: float,
    max_polls: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "poll",
    flow_id: str = "",
) -> T:
    """
    Call fetch until not_ready(result) is false, sleeping interval between calls.

    Args:
        fetch: Coroutine factory performing one poll
        not_ready: Predicate deciding whether to poll again
        interval: Seconds between polls
        max_polls: Upper bound on calls; None polls forever
        sleep: Sleep coroutine, replaceable in tests
        description: What is being polled (for logs and errors)
        flow_id: Flow identifier (for errors)

    Returns:
        The first result for which not_ready is false

    Raises:
        PollingExhaustedError: If max_polls calls all returned "not ready"
    """
    retrying = AsyncRetrying(
        retry=retry_if_result(not_ready),
        wait=wait_fixed(interval),
        stop=stop_after_attempt(max_polls) if max_polls else stop_never,
        sleep=sleep,
        before_sleep=partial(log_poll_retry, description=description),
    )
    try:
        return await retrying(fetch)
    except RetryError as e:
        raise PollingExhaustedError(
            description, flow_id, e.last_attempt.attempt_number,
        ) from e
