"""Per-delivery state handed to a processor."""

from __future__ import annotations

import functools
import json
from typing import Any

from .correlation import merge_into_updates
from .engine_client import DEFAULT_ERROR_MESSAGE, ProcessEngineClient
from .escalation import ErrorEscalator
from .models import Correlation, Stage
from .transport import Delivery


class DeliveryContext:
    """Everything a processor needs for one delivery.

    Created fresh for every delivery and dropped after acknowledgement;
    nothing here is shared between deliveries.

    ``updated_variables`` starts out holding the correlation variables
    when the delivery was sent in synchronous mode, so pushing it to the
    engine also records how to answer the caller later.
    """

    def __init__(
        self,
        delivery: Delivery,
        *,
        process_instance_id: str,
        engine: ProcessEngineClient,
        escalator: ErrorEscalator,
        correlation: Correlation | None = None,
    ) -> None:
        self.delivery = delivery
        self.process_instance_id = process_instance_id
        self.correlation = correlation
        self.process_variables: dict[str, Any] | None = None
        self.updated_variables: dict[str, Any] = merge_into_updates(correlation, {})
        self._engine = engine
        self._escalator = escalator

    @property
    def headers(self) -> dict[str, Any]:
        return self.delivery.headers

    @property
    def body(self) -> bytes:
        return self.delivery.body

    @functools.cached_property
    def message(self) -> Any:
        """The body decoded as JSON."""
        return json.loads(self.delivery.body)

    @property
    def synchronous(self) -> bool:
        return self.correlation is not None

    def _request_context(self) -> dict[str, Any]:
        return {"processInstanceId": self.process_instance_id, "headers": self.headers}

    async def escalate(self, message: str, *, stage: Stage = Stage.IN_PROGRESS) -> None:
        await self._escalator.escalate(message, stage=stage, request_context=self._request_context())

    async def get_process_variables(self) -> bool:
        """Fetch the instance's variables into :attr:`process_variables`.

        On failure the attribute is reset to ``None`` and the failure is
        escalated, so a value from an earlier call is never left behind.
        """
        response = await self._engine.fetch_variables(self.process_instance_id)
        if response.status_code != 200 or response.variables is None:
            self.process_variables = None
            await self._escalator.escalate(
                f"Process variables from process instance <{self.process_instance_id}> "
                f"not received, because `{response.error_message or DEFAULT_ERROR_MESSAGE}`",
                stage=Stage.IN_PROGRESS,
                request_context=self._request_context(),
                response_context={"statusCode": response.status_code},
            )
            return False

        self.process_variables = response.variables
        return True

    async def update_process_variables(self) -> bool:
        """Send :attr:`updated_variables` to the engine."""
        if not self.updated_variables:
            return True
        response = await self._engine.update_variables(self.process_instance_id, self.updated_variables)
        if not response.ok:
            await self._escalator.escalate(
                f"Process variables of process instance <{self.process_instance_id}> "
                f"not updated, because `{response.error_message or DEFAULT_ERROR_MESSAGE}`",
                stage=Stage.IN_PROGRESS,
                request_context=self._request_context(),
                response_context={"statusCode": response.status_code},
            )
            return False
        return True
