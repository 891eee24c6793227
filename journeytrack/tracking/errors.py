"""Typed journey failures and the result wrapper engine operations return."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class JourneyError(Exception):
    """Base class for recoverable journey failures."""


class InvalidSample(JourneyError):
    """Raw position is malformed or out of range."""


class InvalidTransportMode(JourneyError):
    """Transport mode missing or not in the supported set."""


class IllegalTransition(JourneyError):
    """Operation not valid in the current journey state."""


class PositioningUnavailable(JourneyError):
    """Positioning source cannot provide samples."""


@dataclass(frozen=True)
class OperationResult:
    ok: bool
    value: Any = None
    error: JourneyError | None = None

    @classmethod
    def success(cls, value: Any = None) -> OperationResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: JourneyError) -> OperationResult:
        return cls(ok=False, error=error)

    def unwrap(self) -> Any:
        """Return the value, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value
