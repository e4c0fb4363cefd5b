"""Gate endpoints for backends and UI clients."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from tiergate.api.deps import Identity, current_identity, enforce, get_gate, get_locale
from tiergate.domain.models import GateDecision
from tiergate.services.gate import GateService

router = APIRouter()


@router.get("/gates/{feature}", response_model=GateDecision)
async def evaluate_gate(
    feature: str,
    identity: Identity = Depends(current_identity),
    gate: GateService = Depends(get_gate),
    locale: str = Depends(get_locale),
) -> GateDecision:
    """Report whether the caller may use ``feature`` without consuming quota."""

    return await gate.evaluate_gate(identity.user_id, identity.tier, feature, locale=locale)


@router.post("/gates/{feature}/admit", response_model=GateDecision)
async def admit(
    feature: str,
    amount: int = Query(default=1, ge=1, le=100),
    identity: Identity = Depends(current_identity),
    gate: GateService = Depends(get_gate),
    locale: str = Depends(get_locale),
) -> GateDecision:
    """Admit the caller and record usage; denials are returned as 402/403/503."""

    return await enforce(gate, identity, feature, amount=amount, locale=locale)
