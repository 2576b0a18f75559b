"""Tenacity reconnect policy for the consume loop."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_when_event_set,
    wait_fixed,
)

from .config import RabbitMQConfig
from .errors import TRANSPORT_ERRORS

logger = structlog.get_logger()


def _log_reconnect(retry_state: RetryCallState) -> None:
    assert retry_state.outcome is not None
    delay = retry_state.next_action.sleep if retry_state.next_action else None
    if retry_state.outcome.failed:
        exc = retry_state.outcome.exception()
        logger.error(
            "transport_failure",
            error=str(exc),
            error_type=type(exc).__name__,
            attempt=retry_state.attempt_number,
            reconnect_in_seconds=delay,
        )
    else:
        logger.warning(
            "consumer_stopped",
            attempt=retry_state.attempt_number,
            reconnect_in_seconds=delay,
        )


def reconnect_policy(
    config: RabbitMQConfig,
    shutdown_event: asyncio.Event,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncRetrying:
    """Return a tenacity ``AsyncRetrying`` that reruns a transport session.

    A session is retried after a transport error or after its consumer
    stops on its own, with a fixed ``reconnect_delay_seconds`` between
    attempts. There is no attempt limit: only *shutdown_event* stops it.
    Any other exception propagates on the first occurrence.

    Usage::

        async for attempt in reconnect_policy(config.rabbitmq, event):
            with attempt:
                await run_one_session()
    """
    return AsyncRetrying(
        stop=stop_when_event_set(shutdown_event),
        wait=wait_fixed(config.reconnect_delay_seconds),
        retry=(
            retry_if_exception_type(TRANSPORT_ERRORS)
            | retry_if_result(lambda _: not shutdown_event.is_set())
        ),
        before_sleep=_log_reconnect,
        sleep=sleep,
    )
