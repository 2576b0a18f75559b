"""AMQP transport session wrapping pika's blocking client for asyncio."""

from __future__ import annotations

import asyncio
import contextvars
import functools
from collections import deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, TypeVar

import pika
import structlog
from pika.adapters.blocking_connection import BlockingChannel

from .config import ConnectorConfig
from .errors import TRANSPORT_ERRORS
from .models import EscalationEvent

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class Delivery:
    """One message received from the queue, with its acknowledgement tag.

    ``correlation_id`` and ``reply_to`` are only set when the sender used
    request/reply mode.
    """

    delivery_tag: int
    body: bytes
    headers: dict[str, Any] = field(default_factory=dict)
    correlation_id: str | None = None
    reply_to: str | None = None
    redelivered: bool = False


class TransportSession:
    """One primary AMQP connection plus an optional logging connection.

    pika connections are not thread-safe, so every blocking call is run on
    a single worker thread owned by the session. A session is never
    reused after :meth:`close`; the supervisor opens a fresh one instead.
    No retries happen here.
    """

    def __init__(self, config: ConnectorConfig) -> None:
        self._config = config
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"amqp-{config.name}")
        self._connection: pika.BlockingConnection | None = None
        self._channel: BlockingChannel | None = None
        self._log_connection: pika.BlockingConnection | None = None
        self._log_channel: BlockingChannel | None = None
        self._consumer_tag: str | None = None
        self._pending: deque[Delivery] = deque()
        self._closed = False

    @classmethod
    async def connect(cls, config: ConnectorConfig) -> TransportSession:
        """Open a new session; tear it down again if opening fails."""
        session = cls(config)
        try:
            await session.open()
        except BaseException:
            await session.close()
            raise
        return session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        ctx = contextvars.copy_context()
        return await loop.run_in_executor(self._executor, functools.partial(ctx.run, fn, *args))

    async def open(self) -> None:
        await self._call(self._open_sync)
        logger.info(
            "amqp_connected",
            host=self._config.rabbitmq.host,
            vhost=self._config.rabbitmq.vhost,
        )

        if not self._config.logging_transport.enabled:
            return
        try:
            await self._call(self._open_logging_sync)
        except TRANSPORT_ERRORS as exc:
            # Escalation falls back to stdout for this session.
            logger.warning("logging_transport_unavailable", error=str(exc))
        else:
            logger.info("logging_transport_connected", vhost=self._config.logging_transport.vhost)

    def _parameters(self, user: str, password: str, vhost: str) -> pika.ConnectionParameters:
        rmq = self._config.rabbitmq
        return pika.ConnectionParameters(
            host=rmq.host,
            port=rmq.port,
            virtual_host=vhost,
            credentials=pika.PlainCredentials(user, password),
            heartbeat=rmq.heartbeat_seconds,
        )

    def _open_sync(self) -> None:
        rmq = self._config.rabbitmq
        self._connection = pika.BlockingConnection(
            self._parameters(rmq.user, rmq.password.get_secret_value(), rmq.vhost)
        )
        self._channel = self._connection.channel()

    def _open_logging_sync(self) -> None:
        log_cfg = self._config.logging_transport
        self._log_connection = pika.BlockingConnection(
            self._parameters(log_cfg.user, log_cfg.password.get_secret_value(), log_cfg.vhost)
        )
        self._log_channel = self._log_connection.channel()

    async def close(self) -> None:
        """Close both connections. Safe to call any number of times."""
        if self._closed:
            return
        await self._call(self.close_now)
        self._executor.shutdown(wait=False)

    def close_now(self) -> None:
        """Blocking close, also used as the process-exit hook."""
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        for connection in (self._log_connection, self._connection):
            if connection is None:
                continue
            try:
                if connection.is_open:
                    connection.close()
            except TRANSPORT_ERRORS as exc:
                # Connection might already be closed; the error is discarded.
                logger.info("amqp_close_ignored", error=str(exc))
        logger.info("amqp_disconnected")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def logging_available(self) -> bool:
        return self._log_channel is not None and self._log_channel.is_open

    @property
    def is_consuming(self) -> bool:
        return (
            not self._closed
            and self._channel is not None
            and self._channel.is_open
            and bool(self._channel.consumer_tags)
        )

    def _require_channel(self) -> BlockingChannel:
        assert self._channel is not None, "Session not open"
        return self._channel

    # ------------------------------------------------------------------
    # Consuming
    # ------------------------------------------------------------------

    async def subscribe(self, queue: str, *, prefetch_count: int = 1) -> None:
        """Enable publisher confirms, set QoS and register the consumer."""
        await self._call(self._subscribe_sync, queue, prefetch_count)
        logger.info(
            "amqp_subscribed",
            queue=queue,
            prefetch_count=prefetch_count,
            consumer_tag=self._consumer_tag,
        )

    def _subscribe_sync(self, queue: str, prefetch_count: int) -> None:
        channel = self._require_channel()
        channel.confirm_delivery()
        channel.basic_qos(prefetch_count=prefetch_count)
        self._consumer_tag = channel.basic_consume(
            queue=queue,
            on_message_callback=self._on_message,
            auto_ack=False,
        )

    def _on_message(
        self,
        channel: BlockingChannel,
        method: Any,
        properties: pika.BasicProperties,
        body: bytes,
    ) -> None:
        self._pending.append(
            Delivery(
                delivery_tag=method.delivery_tag,
                body=body,
                headers=dict(properties.headers or {}),
                correlation_id=properties.correlation_id,
                reply_to=properties.reply_to,
                redelivered=bool(method.redelivered),
            )
        )

    async def poll(self, timeout: float = 0) -> Delivery | None:
        """Wait at most *timeout* seconds for one delivery."""
        return await self._call(self._poll_sync, timeout)

    def _poll_sync(self, timeout: float) -> Delivery | None:
        assert self._connection is not None, "Session not open"
        if not self._pending:
            self._connection.process_data_events(time_limit=timeout)
        self._service_logging_connection()
        return self._pending.popleft() if self._pending else None

    def _service_logging_connection(self) -> None:
        # Keeps heartbeats flowing on the otherwise idle logging connection.
        if self._log_connection is None or not self._log_connection.is_open:
            return
        try:
            self._log_connection.process_data_events(time_limit=0)
        except TRANSPORT_ERRORS as exc:
            logger.warning("logging_transport_lost", error=str(exc))
            self._log_channel = None

    async def ack(self, delivery: Delivery) -> None:
        await self._call(self._require_channel().basic_ack, delivery.delivery_tag)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def publish_reply(self, reply_to: str, correlation_id: str, body: str) -> None:
        """Publish a reply on the primary channel, straight to *reply_to*."""
        properties = pika.BasicProperties(
            content_type="application/json",
            correlation_id=correlation_id,
        )
        await self._call(
            self._require_channel().basic_publish,
            "",
            reply_to,
            body.encode("utf-8"),
            properties,
        )

    async def publish_log(self, event: EscalationEvent) -> None:
        """Publish an escalation event to the logging queue."""
        assert self._log_channel is not None, "Logging transport not open"
        properties = pika.BasicProperties(content_type="application/json", delivery_mode=2)
        await self._call(
            self._log_channel.basic_publish,
            "",
            self._config.logging_transport.queue,
            event.model_dump_json(by_alias=True).encode("utf-8"),
            properties,
        )
