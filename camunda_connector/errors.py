"""Exception types and the transport-failure classification."""

from __future__ import annotations

from pika.exceptions import AMQPError

# Failures the supervisor recovers from by tearing the session down and
# reconnecting. Anything else propagates out of the consume loop.
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (AMQPError, ConnectionError)


class ConnectorError(Exception):
    """Base class for connector errors."""


class MessageValidationError(ConnectorError):
    """An inbound delivery is missing required headers.

    Fatal for the current process run: the runner turns it into a
    non-zero exit instead of processing partial data.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))
