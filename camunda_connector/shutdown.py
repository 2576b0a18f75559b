"""Graceful shutdown handling via SIGTERM / SIGINT and exit hooks."""

from __future__ import annotations

import asyncio
import atexit
import signal
from collections.abc import Callable

import structlog

logger = structlog.get_logger()


def install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    """Register SIGTERM and SIGINT handlers that set *shutdown_event*.

    Call this once from the running event loop. The consume loop checks
    the event between polls, so an in-flight delivery is always finished
    and acknowledged before the session closes.
    """
    loop = asyncio.get_running_loop()

    def _handle(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _handle, sig)


def register_exit_hook(hook: Callable[[], None]) -> Callable[[], None]:
    """Run *hook* at interpreter exit; return a callable that cancels it.

    The supervisor registers one hook per transport session and cancels
    it at teardown, so hooks do not pile up across reconnects. *hook*
    must tolerate being called after the session already closed.
    """
    atexit.register(hook)

    def _unregister() -> None:
        atexit.unregister(hook)

    return _unregister
