import logging
from datetime import datetime

from app.core.exceptions import (
    QuotaExceededError,
    StoreUnavailableError,
    UnknownModelError,
    UnknownTierError,
)
from app.models.usage_counter import AuthorizationReason, AuthorizationResult, UsageStats
from app.services.credential_registry import CredentialRegistry
from app.services.quota_period import QuotaPeriodClock
from app.services.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


def format_quota_exceeded_message(tier: str, used: int, limit: int, resets_at: datetime) -> str:
    reset_time = resets_at.strftime("%H:%M %Z").strip()
    return (
        f"You've reached your daily limit of {limit} {tier.capitalize()} model messages "
        f"({used}/{limit}). Your limit will reset tomorrow at {reset_time}."
    )


class UsageAccountingService:
    """Decides whether a metered call may proceed and records it

    Users with a personal credential are never metered. Everyone else
    consumes one unit of their tier's daily quota per authorized call.
    """

    def __init__(
        self,
        credential_registry: CredentialRegistry,
        usage_ledger: UsageLedger,
        period_clock: QuotaPeriodClock,
        quota_limits: dict[str, int],
        model_tiers: dict[str, str],
        default_tier: str,
    ) -> None:
        if default_tier not in quota_limits:
            raise ValueError(f"Default tier '{default_tier}' has no configured limit")
        self.credential_registry = credential_registry
        self.usage_ledger = usage_ledger
        self.period_clock = period_clock
        self.quota_limits = dict(quota_limits)
        self.model_tiers = dict(model_tiers)
        self.default_tier = default_tier

    def resolve_tier(self, model: str | None) -> str:
        if model is None:
            return self.default_tier
        tier = self.model_tiers.get(model)
        if tier is None or tier not in self.quota_limits:
            raise UnknownModelError(model)
        return tier

    def limit_for_tier(self, tier: str) -> int:
        if tier not in self.quota_limits:
            raise UnknownTierError(tier)
        return self.quota_limits[tier]

    def authorize_call(self, user_id: str, model: str | None = None) -> AuthorizationResult:
        """Decide whether one metered call may proceed, consuming quota when it is metered"""
        try:
            if self.credential_registry.has_personal_credential(user_id):
                self.credential_registry.mark_used(user_id)
                return AuthorizationResult(allowed=True, reason=AuthorizationReason.BYPASS)
        except StoreUnavailableError as e:
            logger.error("Credential lookup failed for user %s, denying call: %s", user_id, e)
            return AuthorizationResult(
                allowed=False,
                reason=AuthorizationReason.STORE_UNAVAILABLE,
                message="Usage limits could not be checked. Please try again later.",
            )

        try:
            tier = self.resolve_tier(model)
        except UnknownModelError as e:
            return AuthorizationResult(allowed=False, reason=AuthorizationReason.UNKNOWN_MODEL, message=str(e))

        limit = self.quota_limits[tier]
        period_key = self.period_clock.current_period_key()
        resets_at = self.period_clock.next_reset()

        try:
            result = self.usage_ledger.try_consume(user_id, period_key, limit, tier=tier)
        except StoreUnavailableError as e:
            logger.error("Quota ledger unavailable for user %s, denying call: %s", user_id, e)
            return AuthorizationResult(
                allowed=False,
                reason=AuthorizationReason.STORE_UNAVAILABLE,
                tier=tier,
                limit=limit,
                message="Usage limits could not be checked. Please try again later.",
            )

        if not result.allowed:
            logger.info("Quota exceeded for user %s (%s: %d/%d)", user_id, tier, result.used, limit)
            return AuthorizationResult(
                allowed=False,
                reason=AuthorizationReason.QUOTA_EXCEEDED,
                tier=tier,
                used=result.used,
                limit=limit,
                remaining=0,
                resets_at=resets_at,
                message=format_quota_exceeded_message(tier, result.used, limit, resets_at),
            )

        return AuthorizationResult(
            allowed=True,
            reason=AuthorizationReason.METERED,
            tier=tier,
            used=result.used,
            limit=limit,
            remaining=result.remaining,
            resets_at=resets_at,
        )

    def require_call(self, user_id: str, model: str | None = None) -> AuthorizationResult:
        """Same as `authorize_call`, but raises when the call is denied"""
        result = self.authorize_call(user_id, model)
        if result.allowed:
            return result

        match result.reason:
            case AuthorizationReason.QUOTA_EXCEEDED:
                raise QuotaExceededError(
                    tier=result.tier or self.default_tier,
                    limit=result.limit or 0,
                    used=result.used or 0,
                    resets_at=result.resets_at or self.period_clock.next_reset(),
                    message=result.message,
                )
            case AuthorizationReason.UNKNOWN_MODEL:
                raise UnknownModelError(model or "")
            case _:
                raise StoreUnavailableError(result.message or "Usage limits could not be checked")

    def get_stats(self, user_id: str, tier: str | None = None) -> UsageStats:
        """Read-only quota snapshot for one tier in the current period"""
        tier = tier or self.default_tier
        limit = self.limit_for_tier(tier)
        period_key = self.period_clock.current_period_key()

        used = self.usage_ledger.get_usage(user_id, period_key, tier=tier)
        bypass_active = self.credential_registry.has_personal_credential(user_id)

        return UsageStats(
            used=used,
            limit=limit,
            remaining=max(limit - used, 0),
            bypass_active=bypass_active,
            tier=tier,
            period_key=period_key,
            resets_at=self.period_clock.next_reset(),
        )

    def get_all_stats(self, user_id: str) -> list[UsageStats]:
        return [self.get_stats(user_id, tier) for tier in self.quota_limits]
