"""Domain-specific exceptions."""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    pass


class UnknownTierError(ServiceError, ValueError):
    """A tier value outside the catalog reached the gate."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Unknown subscription tier: {value!r}")


class StorageUnavailableError(ServiceError):
    """The usage counter store could not be reached, even after retrying."""

    def __init__(self, operation: str, detail: str | None = None) -> None:
        self.operation = operation
        self.detail = detail
        message = f"Usage store unavailable during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class GateDenied(ServiceError):
    """Raised by route guards to reject a request the gate did not admit."""

    def __init__(self, decision) -> None:
        self.decision = decision
        super().__init__(decision.message or f"Gate denied: {decision.feature}")
