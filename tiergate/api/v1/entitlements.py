"""Read-only entitlement and usage views for UI clients."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from tiergate.api.deps import Identity, current_identity, get_gate
from tiergate.domain.models import UsageSummary, UserEntitlementSnapshot
from tiergate.domain.tiers import lookup
from tiergate.services.gate import GateService

router = APIRouter()


@router.get("/entitlements", response_model=UserEntitlementSnapshot)
async def get_entitlements(
    identity: Identity = Depends(current_identity),
    gate: GateService = Depends(get_gate),
) -> UserEntitlementSnapshot:
    return await gate.entitlement_snapshot(identity.user_id, identity.tier)


@router.get("/usage/{metric}", response_model=UsageSummary)
async def get_usage(
    metric: str,
    identity: Identity = Depends(current_identity),
    gate: GateService = Depends(get_gate),
) -> UsageSummary:
    count, reset_at = await gate.accountant.get_usage(identity.user_id, metric)
    record = lookup(identity.tier)
    return UsageSummary(
        metric=metric,
        count=count,
        limit=None if record.unlimited else record.quota,
        unlimited=record.unlimited,
        reset_at=reset_at,
    )
