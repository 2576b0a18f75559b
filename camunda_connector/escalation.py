"""Error escalation: operational log line plus optional structured event."""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from .config import ConnectorConfig
from .models import EscalationDetail, EscalationEvent, Stage

logger = structlog.get_logger()


class EscalationSink(Protocol):
    """Where structured escalation events are shipped (the logging queue)."""

    @property
    def logging_available(self) -> bool: ...

    async def publish_log(self, event: EscalationEvent) -> None: ...


class ErrorEscalator:
    """Records failures for operators and downstream log consumers.

    Every escalation writes an ``error`` line tagged with the connector's
    owner and queue. When the logging transport is enabled and *sink* has
    it open, an :class:`EscalationEvent` is published as well. Failures to
    publish are logged and dropped: :meth:`escalate` never raises.
    """

    def __init__(self, config: ConnectorConfig, sink: EscalationSink | None = None) -> None:
        self._config = config
        self._sink = sink

    async def escalate(
        self,
        message: str,
        *,
        stage: Stage = Stage.IN_PROGRESS,
        request_context: dict[str, Any] | None = None,
        response_context: dict[str, Any] | None = None,
    ) -> None:
        logger.error(
            message,
            owner=self._config.owner,
            queue=self._config.rabbitmq.queue,
            stage=stage.value,
        )

        if not self._config.logging_transport.enabled or self._sink is None:
            return
        if not self._sink.logging_available:
            logger.warning("escalation_sink_unavailable", stage=stage.value)
            return

        event = EscalationEvent(
            stage=stage,
            request_context=request_context or {},
            response_context=response_context or {},
            detail=EscalationDetail(message=message),
            channel=self._config.rabbitmq.queue,
            logging_queue=self._config.logging_transport.queue,
            owner=self._config.owner,
        )
        try:
            await self._sink.publish_log(event)
        except Exception as exc:
            # Logging must never take down message processing.
            logger.warning("escalation_publish_failed", error=str(exc), stage=stage.value)
