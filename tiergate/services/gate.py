"""Gate surface: one allow/deny answer per (user, tier, feature)."""

from __future__ import annotations

from tiergate.config import TierGateSettings
from tiergate.domain.features import FeatureKind, FeatureSpec, RESUMES_METRIC, resolve_feature
from tiergate.domain.models import GateDecision, GateReason, UserEntitlementSnapshot
from tiergate.domain.tiers import SubscriptionTier, lookup, parse_tier
from tiergate.i18n import I18nService
from tiergate.logging import logger
from tiergate.services.entitlements import EntitlementEvaluator
from tiergate.services.exceptions import StorageUnavailableError
from tiergate.services.usage import UsageAccountant


class GateService:
    def __init__(
        self,
        accountant: UsageAccountant,
        settings: TierGateSettings,
        *,
        evaluator: EntitlementEvaluator | None = None,
        i18n: I18nService | None = None,
    ) -> None:
        self.accountant = accountant
        self.settings = settings
        self.evaluator = evaluator or EntitlementEvaluator(
            near_limit_ratio=settings.gate.near_limit_ratio
        )
        self.i18n = i18n or I18nService(default_locale=settings.default_language)

    async def evaluate_gate(
        self,
        user_id: str,
        tier: SubscriptionTier | str,
        feature: str,
        *,
        locale: str | None = None,
    ) -> GateDecision:
        """Read-only check; never changes usage counters."""

        resolved = parse_tier(tier)
        spec = resolve_feature(feature)
        if spec is None:
            return self._unknown_feature(feature, resolved)
        if spec.kind is not FeatureKind.METERED:
            return self._entitlement_decision(spec, user_id, resolved, locale)

        try:
            count = await self.accountant.get_current_count(user_id, spec.metric)
        except StorageUnavailableError:
            return self._unavailable(
                feature, user_id, resolved, locale, fail_closed=self.settings.gate.fail_closed
            )
        limit = self._limit(resolved)
        if self.evaluator.can_perform_action(resolved, count):
            return GateDecision(feature=feature, allowed=True, current_usage=count, limit=limit)
        return self._quota_denied(feature, user_id, resolved, count, count, locale)

    async def admit(
        self,
        user_id: str,
        tier: SubscriptionTier | str,
        feature: str,
        *,
        amount: int = 1,
        locale: str | None = None,
    ) -> GateDecision:
        """Check and, for metered features, consume usage in one atomic step."""

        resolved = parse_tier(tier)
        spec = resolve_feature(feature)
        if spec is None:
            return self._unknown_feature(feature, resolved)
        if spec.kind is not FeatureKind.METERED:
            return self._entitlement_decision(spec, user_id, resolved, locale)

        record = lookup(resolved)
        try:
            result = await self.accountant.try_consume(user_id, spec.metric, record.quota, amount)
        except StorageUnavailableError:
            # Writes always fail closed, whatever the read policy.
            return self._unavailable(feature, user_id, resolved, locale, fail_closed=True)
        limit = self._limit(resolved)
        if result.accepted:
            return GateDecision(feature=feature, allowed=True, current_usage=result.count, limit=limit)
        return self._quota_denied(
            feature, user_id, resolved, result.count, result.count + amount - 1, locale
        )

    async def entitlement_snapshot(
        self, user_id: str, tier: SubscriptionTier | str
    ) -> UserEntitlementSnapshot:
        resolved = parse_tier(tier)
        count, reset_at = await self.accountant.get_usage(user_id, RESUMES_METRIC)
        return self.evaluator.snapshot(resolved, count, reset_at)

    # Decisions -------------------------------------------------------

    def _entitlement_decision(
        self, spec: FeatureSpec, user_id: str, tier: SubscriptionTier, locale: str | None
    ) -> GateDecision:
        evaluator = self.evaluator
        if spec.kind is FeatureKind.TEMPLATE:
            if evaluator.can_access_template(tier, spec.template_access):
                return GateDecision(feature=spec.key, allowed=True)
            target = evaluator.upgrade_target(
                tier, evaluator.minimum_tier_for_template(spec.template_access)
            )
            feature_name = self.i18n.gettext(
                "feature.template", locale=locale, access=spec.template_access.value.capitalize()
            )
            message = self.i18n.gettext(
                "gate.denied.tier",
                locale=locale,
                feature=feature_name,
                tier=self._tier_name(target, locale),
            )
            return self._denied(spec.key, tier, GateReason.TIER, target, message, user_id=user_id)

        if not evaluator.requires_upgrade(tier, spec.key):
            return GateDecision(feature=spec.key, allowed=True)
        target = evaluator.upgrade_target(tier, evaluator.minimum_tier_for_feature(spec.key))
        feature_name = self.i18n.gettext(f"feature.{spec.key}", locale=locale)
        if target is None:
            message = self.i18n.gettext("gate.denied.flag.none", locale=locale, feature=feature_name)
        else:
            message = self.i18n.gettext(
                "gate.denied.flag",
                locale=locale,
                feature=feature_name,
                tier=self._tier_name(target, locale),
            )
        return self._denied(spec.key, tier, GateReason.FLAG, target, message, user_id=user_id)

    def _quota_denied(
        self,
        feature: str,
        user_id: str,
        tier: SubscriptionTier,
        count: int,
        required_count: int,
        locale: str | None,
    ) -> GateDecision:
        limit = self._limit(tier)
        target = self.evaluator.upgrade_target(
            tier, self.evaluator.minimum_tier_for_usage(required_count)
        )
        feature_name = self.i18n.gettext(f"feature.{feature}", locale=locale)
        if target is None:
            message = self.i18n.gettext(
                "gate.denied.quota", locale=locale, limit=limit, feature=feature_name
            )
        else:
            message = self.i18n.gettext(
                "gate.denied.quota.upgrade",
                locale=locale,
                limit=limit,
                feature=feature_name,
                tier=self._tier_name(target, locale),
            )
        return self._denied(
            feature,
            tier,
            GateReason.QUOTA,
            target,
            message,
            user_id=user_id,
            current_usage=count,
            limit=limit,
        )

    def _unavailable(
        self,
        feature: str,
        user_id: str,
        tier: SubscriptionTier,
        locale: str | None,
        *,
        fail_closed: bool,
    ) -> GateDecision:
        if not fail_closed:
            logger.warning("gate_fail_open", feature=feature, user_id=user_id, tier=tier.value)
            return GateDecision(feature=feature, allowed=True)
        logger.error("gate_fail_closed", feature=feature, user_id=user_id, tier=tier.value)
        return GateDecision(
            feature=feature,
            allowed=False,
            reason=GateReason.UNAVAILABLE,
            message=self.i18n.gettext("gate.denied.unavailable", locale=locale),
        )

    @staticmethod
    def _unknown_feature(feature: str, tier: SubscriptionTier) -> GateDecision:
        # Same fail-open rule as EntitlementEvaluator.requires_upgrade.
        logger.warning("gate_unknown_feature", feature=feature, tier=tier.value)
        return GateDecision(feature=feature, allowed=True)

    @staticmethod
    def _denied(
        feature: str,
        tier: SubscriptionTier,
        reason: GateReason,
        target: SubscriptionTier | None,
        message: str,
        *,
        user_id: str | None = None,
        current_usage: int | None = None,
        limit: int | None = None,
    ) -> GateDecision:
        logger.info(
            "gate_denied",
            feature=feature,
            user_id=user_id,
            tier=tier.value,
            reason=reason.value,
            upgrade_target=target.value if target else None,
        )
        return GateDecision(
            feature=feature,
            allowed=False,
            reason=reason,
            upgrade_target=target,
            message=message,
            current_usage=current_usage,
            limit=limit,
        )

    @staticmethod
    def _limit(tier: SubscriptionTier) -> int | None:
        record = lookup(tier)
        return None if record.unlimited else record.quota

    def _tier_name(self, tier: SubscriptionTier | None, locale: str | None) -> str:
        if tier is None:
            return ""
        return self.i18n.gettext(f"tier.{tier.value}", locale=locale)


__all__ = ["GateService"]
