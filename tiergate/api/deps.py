"""FastAPI dependencies: caller identity, services, and the route guard."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request

from tiergate.domain.models import GateDecision
from tiergate.domain.tiers import SubscriptionTier, parse_tier
from tiergate.services.exceptions import GateDenied
from tiergate.services.gate import GateService


@dataclass(frozen=True)
class Identity:
    user_id: str
    tier: SubscriptionTier


def get_gate(request: Request) -> GateService:
    return request.app.state.gate


def get_locale(request: Request) -> str:
    return request.app.state.i18n.negotiate(request.headers.get("accept-language"))


async def current_identity(
    x_user_id: str | None = Header(default=None),
    x_user_tier: str | None = Header(default=None),
) -> Identity:
    """Identity forwarded by the upstream auth layer.

    A missing tier header means a free account. Any value that is sent,
    including an empty one, must be a canonical tier or ``UnknownTierError``
    is raised.
    """

    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail={"error": "auth_required"})
    tier = parse_tier(x_user_tier) if x_user_tier is not None else SubscriptionTier.FREE
    return Identity(user_id=x_user_id.strip(), tier=tier)


async def enforce(
    gate: GateService,
    identity: Identity,
    feature: str,
    *,
    amount: int = 1,
    locale: str | None = None,
) -> GateDecision:
    decision = await gate.admit(
        identity.user_id, identity.tier, feature, amount=amount, locale=locale
    )
    if not decision.allowed:
        raise GateDenied(decision)
    return decision


def require_gate(feature: str, *, amount: int = 1):
    """Route guard: admit the caller through ``feature`` or reject the request.

    Usage::

        @router.post("/resumes", dependencies=[Depends(require_gate("resumes"))])
    """

    async def _dep(
        identity: Identity = Depends(current_identity),
        gate: GateService = Depends(get_gate),
        locale: str = Depends(get_locale),
    ) -> GateDecision:
        return await enforce(gate, identity, feature, amount=amount, locale=locale)

    return _dep


__all__ = [
    "Identity",
    "current_identity",
    "enforce",
    "get_gate",
    "get_locale",
    "require_gate",
]
