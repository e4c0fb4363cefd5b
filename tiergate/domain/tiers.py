"""Subscription tiers and the static entitlement catalog."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Union

from tiergate.logging import logger
from tiergate.services.exceptions import UnknownTierError


class OrderedEnum(str, Enum):
    """String enum ordered by member declaration."""

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank >= other.rank


class SubscriptionTier(OrderedEnum):
    FREE = "free"
    BASIC = "basic"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class TemplateAccess(OrderedEnum):
    BASIC = "basic"
    ALL = "all"
    PREMIUM = "premium"


class SupportClass(OrderedEnum):
    COMMUNITY = "community"
    EMAIL = "email"
    PRIORITY = "priority"
    DEDICATED = "dedicated"


class Unlimited(Enum):
    UNLIMITED = "unlimited"

    def __repr__(self) -> str:
        return "UNLIMITED"


UNLIMITED = Unlimited.UNLIMITED
Quota = Union[int, Unlimited]


@dataclass(frozen=True)
class EntitlementRecord:
    quota: Quota
    template_access: TemplateAccess
    cover_letters_enabled: bool
    watermark_required: bool
    support_class: SupportClass

    @property
    def unlimited(self) -> bool:
        return self.quota is UNLIMITED


TIER_CATALOG: Mapping[SubscriptionTier, EntitlementRecord] = MappingProxyType(
    {
        SubscriptionTier.FREE: EntitlementRecord(
            quota=1,
            template_access=TemplateAccess.BASIC,
            cover_letters_enabled=False,
            watermark_required=True,
            support_class=SupportClass.COMMUNITY,
        ),
        SubscriptionTier.BASIC: EntitlementRecord(
            quota=5,
            template_access=TemplateAccess.ALL,
            cover_letters_enabled=True,
            watermark_required=False,
            support_class=SupportClass.EMAIL,
        ),
        SubscriptionTier.PROFESSIONAL: EntitlementRecord(
            quota=UNLIMITED,
            template_access=TemplateAccess.PREMIUM,
            cover_letters_enabled=True,
            watermark_required=False,
            support_class=SupportClass.PRIORITY,
        ),
        SubscriptionTier.ENTERPRISE: EntitlementRecord(
            quota=UNLIMITED,
            template_access=TemplateAccess.PREMIUM,
            cover_letters_enabled=True,
            watermark_required=False,
            support_class=SupportClass.DEDICATED,
        ),
    }
)

# Values written by the older three-tier billing backend (free | pro | enterprise).
LEGACY_TIER_ALIASES: Mapping[str, SubscriptionTier] = MappingProxyType(
    {"pro": SubscriptionTier.PROFESSIONAL}
)


def parse_tier(value: SubscriptionTier | str | None) -> SubscriptionTier:
    """Strictly parse a canonical tier identifier."""

    if isinstance(value, SubscriptionTier):
        return value
    if not isinstance(value, str):
        raise UnknownTierError(value)
    try:
        return SubscriptionTier(value.strip().lower())
    except ValueError:
        raise UnknownTierError(value) from None


def migrate_legacy_tier(value: SubscriptionTier | str | None) -> SubscriptionTier:
    """Map a persisted tier value, including legacy aliases, onto the canonical set.

    Only for migrating stored data. Request handling uses :func:`parse_tier`,
    which never aliases.
    """

    if isinstance(value, str):
        legacy = LEGACY_TIER_ALIASES.get(value.strip().lower())
        if legacy is not None:
            logger.info("legacy_tier_migrated", legacy_value=value, tier=legacy.value)
            return legacy
    return parse_tier(value)


def lookup(tier: SubscriptionTier | str) -> EntitlementRecord:
    return TIER_CATALOG[parse_tier(tier)]


def tiers_above(tier: SubscriptionTier | str) -> list[SubscriptionTier]:
    current = parse_tier(tier)
    return [candidate for candidate in SubscriptionTier if candidate > current]


__all__ = [
    "EntitlementRecord",
    "LEGACY_TIER_ALIASES",
    "OrderedEnum",
    "Quota",
    "SubscriptionTier",
    "SupportClass",
    "TIER_CATALOG",
    "TemplateAccess",
    "UNLIMITED",
    "Unlimited",
    "lookup",
    "migrate_legacy_tier",
    "parse_tier",
    "tiers_above",
]
