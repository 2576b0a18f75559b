"""Per-session delivery pipeline: validate, process, reply, acknowledge."""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from .config import ConnectorConfig
from .context import DeliveryContext
from .correlation import ReplyPublisher, extract_correlation, send_reply
from .engine_client import ProcessEngineClient
from .errors import TRANSPORT_ERRORS, MessageValidationError
from .escalation import ErrorEscalator, EscalationSink
from .interface import DeliveryProcessor
from .models import ProcessOutcome, Stage
from .transport import Delivery
from .validation import validate_headers

logger = structlog.get_logger()


def _header_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class ConsumerSession(EscalationSink, ReplyPublisher, Protocol):
    """The parts of a transport session the handler depends on."""

    async def ack(self, delivery: Delivery) -> None: ...


class DeliveryHandler:
    """Runs one delivery through the pipeline on the session it arrived on.

    Transport errors propagate to the supervisor untouched and the
    delivery stays unacknowledged. A validation failure is escalated and
    raised as :class:`MessageValidationError`, also without an ack.
    Everything else ends with exactly one acknowledgement.
    """

    def __init__(
        self,
        config: ConnectorConfig,
        session: ConsumerSession,
        engine: ProcessEngineClient,
        processor: DeliveryProcessor,
    ) -> None:
        self._config = config
        self._session = session
        self._engine = engine
        self._processor = processor
        self._escalator = ErrorEscalator(config, sink=session)
        self._required_headers = list(
            dict.fromkeys([config.process_instance_header, *config.unsafe_headers])
        )

    async def handle(self, delivery: Delivery) -> ProcessOutcome:
        log = logger.bind(delivery_tag=delivery.delivery_tag, queue=self._config.rabbitmq.queue)
        log.info("delivery_received", redelivered=delivery.redelivered)

        await self._validate(delivery)

        process_instance_id = _header_text(delivery.headers[self._config.process_instance_header])
        correlation = extract_correlation(delivery)
        context = DeliveryContext(
            delivery,
            process_instance_id=process_instance_id,
            engine=self._engine,
            escalator=self._escalator,
            correlation=correlation,
        )

        try:
            outcome = await self._processor.process(context)
            if not isinstance(outcome, ProcessOutcome):
                raise TypeError(f"processor returned {type(outcome).__name__}, expected ProcessOutcome")
        except TRANSPORT_ERRORS:
            raise
        except Exception as exc:
            log.exception("processor_failed", process_instance_id=process_instance_id)
            await context.escalate(f"Processing of process instance <{process_instance_id}> failed: {exc}")
            outcome = ProcessOutcome.failed(str(exc))

        if outcome.success and outcome.process_instance_id is None:
            outcome = outcome.model_copy(update={"process_instance_id": process_instance_id})

        await send_reply(
            self._session,
            correlation,
            outcome,
            process_instance_field=self._config.process_instance_header,
        )
        await self._session.ack(delivery)
        log.info(
            "delivery_acknowledged",
            process_instance_id=process_instance_id,
            success=outcome.success,
            synchronous=correlation is not None,
        )
        return outcome

    async def _validate(self, delivery: Delivery) -> None:
        result = validate_headers(delivery.headers, self._required_headers)
        if result.ok:
            return

        request_context: dict[str, Any] = {"headers": delivery.headers}
        for error in result.errors:
            await self._escalator.escalate(error, stage=Stage.RECEIVED, request_context=request_context)
        raise MessageValidationError(result.errors)
