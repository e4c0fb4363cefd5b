"""Pure feature-gating decisions derived from the tier catalog."""

from __future__ import annotations

import math
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Mapping

from tiergate.domain.models import UserEntitlementSnapshot
from tiergate.domain.tiers import (
    EntitlementRecord,
    SubscriptionTier,
    TemplateAccess,
    lookup,
    parse_tier,
    tiers_above,
)
from tiergate.logging import logger

# Each predicate answers "does this record already grant the feature?".
FEATURE_REQUIREMENTS: Mapping[str, Callable[[EntitlementRecord], bool]] = MappingProxyType(
    {
        "coverLetters": lambda record: record.cover_letters_enabled,
        "noWatermark": lambda record: not record.watermark_required,
    }
)


def _template_class(value: TemplateAccess | str) -> TemplateAccess:
    if isinstance(value, TemplateAccess):
        return value
    return TemplateAccess(value.strip().lower())


class EntitlementEvaluator:
    """Stateless answers to "may this tier do X?" questions."""

    def __init__(self, *, near_limit_ratio: float = 0.8) -> None:
        self.near_limit_ratio = near_limit_ratio

    def can_perform_action(self, tier: SubscriptionTier | str, current_usage_count: int) -> bool:
        if current_usage_count < 0:
            raise ValueError("current_usage_count must be non-negative")
        record = lookup(tier)
        if record.unlimited:
            return True
        return current_usage_count < record.quota

    def can_access_template(
        self, tier: SubscriptionTier | str, template_access_class: TemplateAccess | str
    ) -> bool:
        return lookup(tier).template_access >= _template_class(template_access_class)

    def requires_upgrade(self, tier: SubscriptionTier | str, feature_key: str) -> bool:
        record = lookup(tier)
        granted = FEATURE_REQUIREMENTS.get(feature_key)
        if granted is None:
            # Unknown flags are allowed through on purpose.
            logger.debug("unknown_feature_key", feature=feature_key, tier=parse_tier(tier).value)
            return False
        return not granted(record)

    # Upgrade targets -------------------------------------------------

    def minimum_tier_for_feature(self, feature_key: str) -> SubscriptionTier | None:
        granted = FEATURE_REQUIREMENTS.get(feature_key)
        if granted is None:
            return SubscriptionTier.FREE
        return self._first_tier(lambda tier: granted(lookup(tier)))

    def minimum_tier_for_template(
        self, template_access_class: TemplateAccess | str
    ) -> SubscriptionTier | None:
        required = _template_class(template_access_class)
        return self._first_tier(lambda tier: self.can_access_template(tier, required))

    def minimum_tier_for_usage(self, current_usage_count: int) -> SubscriptionTier | None:
        return self._first_tier(lambda tier: self.can_perform_action(tier, current_usage_count))

    @staticmethod
    def upgrade_target(
        tier: SubscriptionTier | str, minimum: SubscriptionTier | None
    ) -> SubscriptionTier | None:
        """Return ``minimum`` only when it is an actual upgrade over ``tier``."""

        if minimum is None or minimum not in tiers_above(tier):
            return None
        return minimum

    @staticmethod
    def _first_tier(predicate: Callable[[SubscriptionTier], bool]) -> SubscriptionTier | None:
        for tier in SubscriptionTier:
            if predicate(tier):
                return tier
        return None

    # Derived view ----------------------------------------------------

    def snapshot(
        self,
        tier: SubscriptionTier | str,
        current_count: int,
        period_reset_at: datetime | None = None,
    ) -> UserEntitlementSnapshot:
        resolved = parse_tier(tier)
        record = lookup(resolved)
        quota = None if record.unlimited else record.quota
        remaining = None if quota is None else max(quota - current_count, 0)
        near_limit = False
        if quota:
            near_limit = current_count >= math.ceil(quota * self.near_limit_ratio)
        return UserEntitlementSnapshot(
            tier=resolved,
            quota=quota,
            unlimited=record.unlimited,
            current_count=current_count,
            remaining=remaining,
            template_access=record.template_access,
            cover_letters_enabled=record.cover_letters_enabled,
            watermark_required=record.watermark_required,
            support_class=record.support_class,
            period_reset_at=period_reset_at,
            near_limit=near_limit,
            at_limit=not self.can_perform_action(resolved, current_count),
        )


__all__ = ["EntitlementEvaluator", "FEATURE_REQUIREMENTS"]
