"""ConnectorSupervisor — owns the transport session and runs the consume loop."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

import structlog
import uvicorn
from tenacity import RetryError

from .config import ConnectorConfig
from .engine_client import ProcessEngineClient
from .errors import MessageValidationError
from .handler import ConsumerSession, DeliveryHandler
from .health import create_health_app
from .interface import DeliveryProcessor
from .logging import setup_logging
from .models import SupervisorState
from .retry import reconnect_policy
from .shutdown import install_signal_handlers, register_exit_hook
from .transport import Delivery, TransportSession

logger = structlog.get_logger()

# One unacknowledged delivery per consumer: the only concurrency limit.
PREFETCH_COUNT = 1


class SupervisedSession(ConsumerSession, Protocol):
    """Transport session contract the consume loop relies on."""

    @property
    def is_consuming(self) -> bool: ...

    async def subscribe(self, queue: str, *, prefetch_count: int = 1) -> None: ...

    async def poll(self, timeout: float = 0) -> Delivery | None: ...

    async def close(self) -> None: ...

    def close_now(self) -> None: ...


SessionFactory = Callable[[ConnectorConfig], Awaitable[SupervisedSession]]


class ConnectorSupervisor:
    """Runs one connector: queue in, processor, replies out.

    ``run()`` starts the following concurrently via
    :class:`asyncio.TaskGroup`:

    * the consume loop, which connects, subscribes with prefetch 1 and
      feeds each delivery through a :class:`DeliveryHandler`; on a
      transport failure it tears the session down, waits the reconnect
      delay and starts over with a fresh session
    * the FastAPI health server (for K8s probes)

    The loop only ends on SIGTERM / SIGINT, or when a delivery fails
    validation, in which case ``run()`` raises
    :class:`MessageValidationError` after cleaning up. Any other error
    that ends a task is re-raised as an :class:`ExceptionGroup`.
    """

    def __init__(
        self,
        config: ConnectorConfig,
        processor: DeliveryProcessor,
        *,
        session_factory: SessionFactory = TransportSession.connect,
        engine: ProcessEngineClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.processor = processor
        self.state: SupervisorState = SupervisorState.DISCONNECTED
        self.start_time: float = time.monotonic()
        self.deliveries_processed: int = 0
        self.reconnects: int = 0

        self._connect = session_factory
        self._engine = engine or ProcessEngineClient(config.camunda)
        self._sleep = sleep
        self._shutdown_event = asyncio.Event()

    # ------------------------------------------------------------------
    # One transport session
    # ------------------------------------------------------------------

    async def _run_session(self) -> None:
        """Connect, subscribe and consume until the session fails or stops."""
        queue = self.config.rabbitmq.queue
        self.state = SupervisorState.CONNECTING
        try:
            session = await self._connect(self.config)
        except BaseException:
            self.state = SupervisorState.DISCONNECTED
            raise

        unregister_exit_hook = register_exit_hook(session.close_now)
        try:
            await session.subscribe(queue, prefetch_count=PREFETCH_COUNT)
            self.state = SupervisorState.SUBSCRIBED
            logger.info("waiting_for_messages", queue=queue)

            handler = DeliveryHandler(self.config, session, self._engine, self.processor)
            while session.is_consuming and not self._shutdown_event.is_set():
                delivery = await session.poll()
                if delivery is not None:
                    await handler.handle(delivery)
                    self.deliveries_processed += 1
                await self._sleep(self.config.rabbitmq.tick_interval_seconds)
        finally:
            self.state = SupervisorState.DRAINING
            await session.close()
            unregister_exit_hook()
            self.state = SupervisorState.DISCONNECTED

    # ------------------------------------------------------------------
    # Consume loop
    # ------------------------------------------------------------------

    async def _run_consume_loop(self) -> None:
        """Run transport sessions back to back until shutdown."""
        logger.info("consume_loop_started", queue=self.config.rabbitmq.queue)
        policy = reconnect_policy(self.config.rabbitmq, self._shutdown_event, sleep=self._sleep)
        try:
            async for attempt in policy:
                with attempt:
                    self.reconnects = attempt.retry_state.attempt_number - 1
                    await self._run_session()
        except RetryError:
            logger.info("reconnect_cancelled_by_shutdown")
        finally:
            self.state = SupervisorState.STOPPED
            logger.info("consume_loop_stopped", queue=self.config.rabbitmq.queue)

    # ------------------------------------------------------------------
    # Health server
    # ------------------------------------------------------------------

    async def _run_health_server(self) -> None:
        """Start the FastAPI health server and shut it down on signal."""
        app = create_health_app(self)
        config = uvicorn.Config(
            app,
            host="0.0.0.0",
            port=self.config.health_port,
            log_level="warning",
        )
        server = uvicorn.Server(config)

        serve_task = asyncio.create_task(server.serve())
        try:
            await self._shutdown_event.wait()
        finally:
            server.should_exit = True
            await serve_task

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Start all connector subsystems and run until shutdown.

        Connectors call::

            asyncio.run(supervisor.run())
        """
        setup_logging(
            json=self.config.log_json,
            level=self.config.log_level,
            owner=self.config.owner,
            queue=self.config.rabbitmq.queue,
        )
        install_signal_handlers(self._shutdown_event)
        self.start_time = time.monotonic()

        logger.info("connector_starting", connector=self.config.name)
        await self._engine.start()

        fatal: MessageValidationError | None = None
        failure: ExceptionGroup | None = None
        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(self._run_consume_loop())
                tg.create_task(self._run_health_server())
        except* MessageValidationError as group:
            fatal = group.exceptions[0]  # type: ignore[assignment]
        except* Exception as group:
            logger.exception("connector_task_group_error", connector=self.config.name)
            failure = group
        finally:
            self.state = SupervisorState.STOPPED
            await self._engine.stop()
            logger.info("connector_stopped", connector=self.config.name)

        if fatal is not None:
            raise fatal
        if failure is not None:
            raise failure
