"""Pydantic models shared across service and HTTP layers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from tiergate.domain.tiers import SubscriptionTier, SupportClass, TemplateAccess


class GateReason(str, Enum):
    QUOTA = "quota"
    TIER = "tier"
    FLAG = "flag"
    UNAVAILABLE = "unavailable"


class ConsumeResult(BaseModel):
    accepted: bool
    count: int = Field(ge=0)
    period_reset_at: datetime


class UserEntitlementSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: SubscriptionTier
    quota: int | None = Field(default=None, description="None means unlimited.")
    unlimited: bool
    current_count: int = Field(ge=0)
    remaining: int | None = None
    template_access: TemplateAccess
    cover_letters_enabled: bool
    watermark_required: bool
    support_class: SupportClass
    period_reset_at: datetime | None = None
    near_limit: bool = False
    at_limit: bool = False


class GateDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature: str
    allowed: bool
    reason: GateReason | None = None
    upgrade_target: SubscriptionTier | None = None
    message: str | None = None
    current_usage: int | None = None
    limit: int | None = None


class UsageSummary(BaseModel):
    metric: str
    count: int
    limit: int | None
    unlimited: bool
    reset_at: datetime


__all__ = [
    "ConsumeResult",
    "GateDecision",
    "GateReason",
    "UsageSummary",
    "UserEntitlementSnapshot",
]
