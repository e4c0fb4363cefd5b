"""Translate gate failures into HTTP responses and log them for operators."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tiergate.config import TierGateSettings
from tiergate.domain.models import GateDecision, GateReason
from tiergate.logging import logger
from tiergate.services.exceptions import GateDenied, StorageUnavailableError, UnknownTierError

# reason -> (HTTP status, machine-readable error code)
DENIAL_STATUS: dict[GateReason, tuple[int, str]] = {
    GateReason.QUOTA: (402, "quota_exceeded"),
    GateReason.TIER: (403, "tier_required"),
    GateReason.FLAG: (403, "feature_not_allowed"),
    GateReason.UNAVAILABLE: (503, "usage_store_unavailable"),
}


def denial_body(decision: GateDecision) -> tuple[int, dict]:
    status, code = DENIAL_STATUS.get(decision.reason, (403, "feature_not_allowed"))
    body = {
        "error": code,
        "feature": decision.feature,
        "message": decision.message,
        "upgradeTarget": decision.upgrade_target.value if decision.upgrade_target else None,
        "currentUsage": decision.current_usage,
        "limit": decision.limit,
    }
    return status, body


class ErrorMonitor:
    """Exception handlers registered on the FastAPI application."""

    def __init__(self, settings: TierGateSettings) -> None:
        self._settings = settings

    def register(self, app: FastAPI) -> None:
        app.add_exception_handler(GateDenied, self.handle_gate_denied)
        app.add_exception_handler(UnknownTierError, self.handle_unknown_tier)
        app.add_exception_handler(StorageUnavailableError, self.handle_storage_unavailable)

    async def handle_gate_denied(self, request: Request, exc: GateDenied) -> JSONResponse:
        status, body = denial_body(exc.decision)
        return JSONResponse(status_code=status, content=body)

    async def handle_unknown_tier(self, request: Request, exc: UnknownTierError) -> JSONResponse:
        logger.error(
            "unknown_tier_rejected",
            path=request.url.path,
            tier=str(exc.value),
            environment=self._settings.environment,
        )
        return JSONResponse(
            status_code=422,
            content={"error": "unknown_tier", "message": str(exc)},
        )

    async def handle_storage_unavailable(
        self, request: Request, exc: StorageUnavailableError
    ) -> JSONResponse:
        logger.error(
            "usage_store_unavailable_request_failed",
            path=request.url.path,
            operation=exc.operation,
            detail=exc.detail,
            environment=self._settings.environment,
        )
        return JSONResponse(
            status_code=503,
            content={"error": "usage_store_unavailable", "message": "Usage tracking is temporarily unavailable."},
        )


__all__ = ["DENIAL_STATUS", "ErrorMonitor", "denial_body"]
