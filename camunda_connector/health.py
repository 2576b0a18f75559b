"""FastAPI health endpoints for Kubernetes liveness and readiness probes."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .models import HealthStatus, SupervisorState

if TYPE_CHECKING:
    from .supervisor import ConnectorSupervisor


def create_health_app(supervisor: ConnectorSupervisor) -> FastAPI:
    """Build a minimal FastAPI app with ``/health`` and ``/ready`` routes.

    ``/health`` stays 200 while the supervisor is reconnecting, since the
    consume loop recovers on its own; only a stopped supervisor is
    unhealthy. ``/ready`` is 200 only while subscribed to the queue.
    """
    app = FastAPI(title=f"{supervisor.config.name} health", docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> JSONResponse:
        status = HealthStatus(
            connector_name=supervisor.config.name,
            state=supervisor.state,
            uptime_seconds=time.monotonic() - supervisor.start_time,
            deliveries_processed=supervisor.deliveries_processed,
            reconnects=supervisor.reconnects,
            details=await supervisor.processor.health_check(),
        )
        code = 503 if supervisor.state == SupervisorState.STOPPED else 200
        return JSONResponse(content=status.model_dump(mode="json"), status_code=code)

    @app.get("/ready")
    async def ready() -> JSONResponse:
        is_ready = supervisor.state == SupervisorState.SUBSCRIBED
        return JSONResponse(
            content={"ready": is_ready, "state": supervisor.state.value},
            status_code=200 if is_ready else 503,
        )

    return app
