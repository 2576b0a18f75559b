"""Camunda/RabbitMQ connector core.

Public API re-exported here for convenience::

    from camunda_connector import DeliveryProcessor, DeliveryContext, ProcessOutcome
"""

from .config import CamundaConfig, ConnectorConfig, LoggingTransportConfig, RabbitMQConfig
from .context import DeliveryContext
from .correlation import extract_correlation, merge_into_updates, send_reply
from .engine_client import EngineResponse, ProcessEngineClient
from .errors import TRANSPORT_ERRORS, ConnectorError, MessageValidationError
from .escalation import ErrorEscalator
from .handler import DeliveryHandler
from .health import create_health_app
from .interface import DeliveryProcessor
from .logging import setup_logging
from .models import (
    Correlation,
    EscalationEvent,
    HealthStatus,
    ProcessOutcome,
    Stage,
    SupervisorState,
)
from .retry import reconnect_policy
from .runner import load_processor, run_connector
from .shutdown import install_signal_handlers, register_exit_hook
from .supervisor import ConnectorSupervisor
from .transport import Delivery, TransportSession
from .validation import ValidationResult, validate_headers

__all__ = [
    "TRANSPORT_ERRORS",
    "CamundaConfig",
    "ConnectorConfig",
    "ConnectorError",
    "ConnectorSupervisor",
    "Correlation",
    "Delivery",
    "DeliveryContext",
    "DeliveryHandler",
    "DeliveryProcessor",
    "EngineResponse",
    "ErrorEscalator",
    "EscalationEvent",
    "HealthStatus",
    "LoggingTransportConfig",
    "MessageValidationError",
    "ProcessEngineClient",
    "ProcessOutcome",
    "RabbitMQConfig",
    "Stage",
    "SupervisorState",
    "TransportSession",
    "ValidationResult",
    "create_health_app",
    "extract_correlation",
    "install_signal_handlers",
    "load_processor",
    "merge_into_updates",
    "reconnect_policy",
    "register_exit_hook",
    "run_connector",
    "send_reply",
    "setup_logging",
    "validate_headers",
]
