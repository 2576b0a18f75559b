"""Process-level entry: load a processor, run the supervisor, map exit codes."""

from __future__ import annotations

import asyncio
import importlib

import structlog

from .config import ConnectorConfig
from .errors import MessageValidationError
from .interface import DeliveryProcessor
from .supervisor import ConnectorSupervisor

logger = structlog.get_logger()

EXIT_VALIDATION_FAILED = 1
EXIT_CONNECTOR_FAILED = 3


def load_processor(path: str) -> DeliveryProcessor:
    """Instantiate a processor from a ``package.module:ClassName`` path."""
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise ValueError(f"Expected 'module:ClassName', got {path!r}")
    processor_cls = getattr(importlib.import_module(module_name), class_name)
    if not (isinstance(processor_cls, type) and issubclass(processor_cls, DeliveryProcessor)):
        raise TypeError(f"{path} is not a DeliveryProcessor subclass")
    return processor_cls()


def run_connector(processor: DeliveryProcessor, config: ConnectorConfig | None = None) -> int:
    """Run a connector until shutdown and return the process exit status."""
    if config is None:
        config = ConnectorConfig()
    supervisor = ConnectorSupervisor(config, processor)
    try:
        asyncio.run(supervisor.run())
    except MessageValidationError as exc:
        logger.error("connector_terminated", reason="validation_failed", errors=exc.errors)
        return EXIT_VALIDATION_FAILED
    except Exception:
        logger.exception("connector_terminated", reason="unexpected_error")
        return EXIT_CONNECTOR_FAILED
    return 0
