"""DeliveryProcessor — the ABC that every connector must implement."""

from __future__ import annotations

import abc

from .context import DeliveryContext
from .models import ProcessOutcome


class DeliveryProcessor(abc.ABC):
    """Business logic for one kind of task message.

    The supervisor owns connecting, validation, correlation, replies,
    acknowledgement and reconnects. A processor only turns a validated
    delivery into a :class:`ProcessOutcome`, using the context to read
    and update process variables.
    """

    @abc.abstractmethod
    async def process(self, context: DeliveryContext) -> ProcessOutcome:
        """Handle one delivery.

        Exceptions other than transport failures are escalated by the
        caller and reported to synchronous callers as an error envelope.
        """
        ...

    async def health_check(self) -> dict[str, object]:
        """Return processor-specific health details.

        The dict is included in the ``/health`` response.
        """
        return {}
