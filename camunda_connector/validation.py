"""Header validation for inbound deliveries."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ValidationResult:
    """Outcome of :func:`validate_headers`.

    ``errors`` holds one human-readable line per failed check, in the
    order the checks ran.
    """

    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_headers(
    headers: Mapping[str, Any] | None,
    required_keys: Iterable[str],
) -> ValidationResult:
    """Check that *headers* is set and carries every key in *required_keys*.

    Only presence is checked; values are not inspected. An absent or empty
    header mapping short-circuits, since every key check would fail too.
    """
    result = ValidationResult()
    if not headers:
        result.errors.append("`headers` is not set in incoming message")
        return result

    for key in required_keys:
        if key not in headers:
            result.errors.append(f"`{key}` param is not set in incoming message")
    return result
