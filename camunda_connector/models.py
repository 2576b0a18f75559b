"""Data models for the connector core."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SupervisorState(str, Enum):
    """Lifecycle state of the consume loop."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    DRAINING = "draining"
    STOPPED = "stopped"


class Stage(str, Enum):
    """Pipeline stage an escalation was raised from."""

    RECEIVED = "received"
    IN_PROGRESS = "in-progress"
    RESPONSE = "response"
    TRANSPORT = "transport"


class Correlation(BaseModel):
    """Request/reply metadata of a delivery sent in synchronous mode."""

    model_config = ConfigDict(frozen=True)

    correlation_id: str = Field(description="Token the caller matches the reply against")
    reply_to: str = Field(description="Transient destination the reply is published to")


class ProcessOutcome(BaseModel):
    """Result a processor returns for one delivery."""

    success: bool = Field(description="Whether the delivery was processed")
    error_message: str | None = Field(
        default=None,
        description="Failure text returned to synchronous callers",
    )
    process_instance_id: str | None = Field(
        default=None,
        description="Process instance to report back on success",
    )

    @classmethod
    def ok(cls, process_instance_id: str | None = None) -> ProcessOutcome:
        return cls(success=True, process_instance_id=process_instance_id)

    @classmethod
    def failed(cls, message: str) -> ProcessOutcome:
        return cls(success=False, error_message=message)


class EscalationDetail(BaseModel):
    type: str = "system"
    message: str


class EscalationEvent(BaseModel):
    """Structured error event shipped to the logging queue.

    Serialized with camelCase keys (``requestContext``, ``loggingQueue``)
    for the downstream log consumers.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    domain: str = "bpm"
    stage: Stage
    level: str = "error"
    request_context: dict[str, Any] = Field(default_factory=dict)
    response_context: dict[str, Any] = Field(default_factory=dict)
    detail: EscalationDetail
    channel: str = Field(description="Queue the failing delivery was consumed from")
    logging_queue: str
    owner: str = ""
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class HealthStatus(BaseModel):
    """Response model for the /health K8s probe endpoint."""

    connector_name: str = Field(description="Name of the connector")
    state: SupervisorState = Field(description="Current supervisor state")
    uptime_seconds: float = Field(description="Seconds since the connector started")
    deliveries_processed: int = Field(default=0, description="Deliveries acknowledged so far")
    reconnects: int = Field(default=0, description="Transport sessions torn down and retried")
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Processor-specific health details",
    )
