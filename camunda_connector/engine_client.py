"""Async HTTP client for the process engine REST API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from .config import CamundaConfig

logger = structlog.get_logger()

DEFAULT_ERROR_MESSAGE = "Request error"


@dataclass
class EngineResponse:
    """Status of one engine call.

    ``status_code`` is ``None`` when the engine could not be reached.
    ``variables`` is only set on a successful variable fetch.
    """

    status_code: int | None
    variables: dict[str, Any] | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return DEFAULT_ERROR_MESSAGE
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return DEFAULT_ERROR_MESSAGE


class ProcessEngineClient:
    """Reads and writes process-instance variables over the engine REST API.

    Variables are fetched with ``deserializeValues=false`` so each entry
    keeps the engine's own ``{"value", "type", "valueInfo"}`` box and can
    be written back unchanged.
    """

    def __init__(self, config: CamundaConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=httpx.Timeout(self._config.timeout_seconds),
        )
        logger.info("engine_client_started", base_url=self._config.api_url)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("engine_client_stopped")

    async def fetch_variables(self, process_instance_id: str) -> EngineResponse:
        """GET the variable collection of one process instance.

        Never raises for HTTP or connection failures; inspect
        :attr:`EngineResponse.variables` instead. A 200 whose body is not
        a JSON object comes back without variables.
        """
        assert self._client is not None, "Client not started"
        try:
            response = await self._client.get(
                f"/process-instance/{process_instance_id}/variables",
                params={"deserializeValues": "false"},
            )
        except httpx.TransportError as exc:
            logger.warning(
                "engine_unreachable",
                process_instance_id=process_instance_id,
                error=str(exc),
            )
            return EngineResponse(status_code=None, error_message=str(exc) or DEFAULT_ERROR_MESSAGE)

        if response.status_code != 200:
            return EngineResponse(
                status_code=response.status_code,
                error_message=_error_message(response),
            )

        try:
            variables = response.json()
        except ValueError:
            variables = None
        if not isinstance(variables, dict):
            logger.warning("engine_unreadable_variables", process_instance_id=process_instance_id)
            return EngineResponse(status_code=200, error_message=DEFAULT_ERROR_MESSAGE)

        logger.debug(
            "process_variables_fetched",
            process_instance_id=process_instance_id,
            count=len(variables),
        )
        return EngineResponse(status_code=200, variables=variables)

    async def update_variables(
        self,
        process_instance_id: str,
        modifications: dict[str, Any],
    ) -> EngineResponse:
        """POST an Update Variable Set to a process instance.

        The engine answers 204 No Content on success.
        """
        assert self._client is not None, "Client not started"
        try:
            response = await self._client.post(
                f"/process-instance/{process_instance_id}/variables",
                json={"modifications": modifications},
            )
        except httpx.TransportError as exc:
            return EngineResponse(status_code=None, error_message=str(exc) or DEFAULT_ERROR_MESSAGE)

        if response.status_code not in (200, 204):
            return EngineResponse(
                status_code=response.status_code,
                error_message=_error_message(response),
            )
        return EngineResponse(status_code=response.status_code)
