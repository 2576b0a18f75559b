"""Request/reply correlation for deliveries sent in synchronous mode."""

from __future__ import annotations

import json
from typing import Any, Protocol

import structlog

from .models import Correlation, ProcessOutcome
from .transport import Delivery

logger = structlog.get_logger()

CORRELATION_ID_VARIABLE = "rabbitCorrelationId"
CORRELATION_REPLY_TO_VARIABLE = "rabbitCorrelationReplyTo"


class ReplyPublisher(Protocol):
    async def publish_reply(self, reply_to: str, correlation_id: str, body: str) -> None: ...


def extract_correlation(delivery: Delivery) -> Correlation | None:
    """Return the delivery's correlation pair, or ``None`` for fire-and-forget.

    Both the correlation id and the reply-to destination must be present.
    """
    if not delivery.correlation_id or not delivery.reply_to:
        return None
    return Correlation(correlation_id=delivery.correlation_id, reply_to=delivery.reply_to)


def merge_into_updates(correlation: Correlation | None, updates: dict[str, Any]) -> dict[str, Any]:
    """Add the correlation pair to *updates* as String-typed engine variables."""
    if correlation is not None:
        updates[CORRELATION_ID_VARIABLE] = {"value": correlation.correlation_id, "type": "String"}
        updates[CORRELATION_REPLY_TO_VARIABLE] = {"value": correlation.reply_to, "type": "String"}
    return updates


def success_response(
    process_instance_id: str | None = None,
    *,
    process_instance_field: str = "camundaProcessInstanceId",
) -> str:
    response: dict[str, Any] = {"success": True}
    if process_instance_id is not None:
        response[process_instance_field] = process_instance_id
    return json.dumps(response, separators=(",", ":"))


def error_response(message: str) -> str:
    response = {"success": False, "error": [{"message": message}]}
    return json.dumps(response, separators=(",", ":"))


async def send_reply(
    publisher: ReplyPublisher,
    correlation: Correlation | None,
    outcome: ProcessOutcome,
    *,
    process_instance_field: str = "camundaProcessInstanceId",
) -> bool:
    """Publish the response envelope for *outcome* to the caller.

    *publisher* must be the session that received the delivery: reply-to
    queues are scoped to the caller's connection. Returns ``False``
    without publishing when the delivery was fire-and-forget.
    """
    if correlation is None:
        return False

    if outcome.success:
        body = success_response(
            outcome.process_instance_id,
            process_instance_field=process_instance_field,
        )
    else:
        body = error_response(outcome.error_message or "Processing failed")

    await publisher.publish_reply(correlation.reply_to, correlation.correlation_id, body)
    logger.info(
        "synchronous_reply_sent",
        reply_to=correlation.reply_to,
        correlation_id=correlation.correlation_id,
        success=outcome.success,
    )
    return True
