"""UsageAccountingService: bypass, metering, tiers, stats, and fail-closed behavior."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import (
    QuotaExceededError,
    StoreUnavailableError,
    UnknownModelError,
    UnknownTierError,
)
from app.models.usage_counter import AuthorizationReason
from app.services.quota_period import QuotaPeriodClock
from app.services.usage_accounting_service import (
    UsageAccountingService,
    format_quota_exceeded_message,
)
from app.services.usage_ledger import UsageLedger


class UnavailableLedger:
    def try_consume(self, user_id, period_key, limit, tier):
        raise StoreUnavailableError("timed out")

    def get_usage(self, user_id, period_key, tier):
        raise StoreUnavailableError("timed out")


class UnavailableRegistry:
    def has_personal_credential(self, user_id):
        raise StoreUnavailableError("timed out")

    def mark_used(self, user_id):
        pass


def _service(registry, ledger, period_clock) -> UsageAccountingService:
    return UsageAccountingService(
        credential_registry=registry,
        usage_ledger=ledger,
        period_clock=period_clock,
        quota_limits={"basic": 5},
        model_tiers={},
        default_tier="basic",
    )


# =============================================================================
# authorize_call
# =============================================================================


class TestAuthorizeCall:
    def test_metered_call_consumes_quota(self, accounting_service: UsageAccountingService):
        result = accounting_service.authorize_call("user-1")

        assert result.allowed
        assert result.reason == AuthorizationReason.METERED
        assert result.tier == "basic"
        assert result.used == 1
        assert result.remaining == 4

    def test_quota_exceeded_after_limit(self, accounting_service):
        for _ in range(5):
            assert accounting_service.authorize_call("user-1").allowed

        result = accounting_service.authorize_call("user-1")

        assert not result.allowed
        assert result.reason == AuthorizationReason.QUOTA_EXCEEDED
        assert result.used == 5
        assert result.remaining == 0
        assert "daily limit of 5 Basic model messages (5/5)" in result.message

    def test_model_tiers_have_separate_quotas(self, accounting_service):
        assert accounting_service.authorize_call("user-1", "gpt-5").allowed
        assert accounting_service.authorize_call("user-1", "gpt-5").allowed

        premium = accounting_service.authorize_call("user-1", "gpt-5")
        basic = accounting_service.authorize_call("user-1", "gpt-5-mini")

        assert premium.reason == AuthorizationReason.QUOTA_EXCEEDED
        assert premium.tier == "premium"
        assert basic.allowed and basic.tier == "basic"

    def test_unknown_model_is_rejected(self, accounting_service):
        result = accounting_service.authorize_call("user-1", "mystery-model")

        assert not result.allowed
        assert result.reason == AuthorizationReason.UNKNOWN_MODEL

    def test_bypass_does_not_touch_ledger(self, accounting_service, credential_registry, usage_ledger, period_clock):
        credential_registry.set_personal_credential("user-1", "sk-own")

        results = [accounting_service.authorize_call("user-1") for _ in range(10)]

        assert all(r.allowed and r.reason == AuthorizationReason.BYPASS for r in results)
        assert usage_ledger.get_usage("user-1", period_clock.current_period_key(), tier="basic") == 0
        assert credential_registry.get_record("user-1").last_used_at is not None

    def test_bypass_overrides_exhausted_quota(self, accounting_service, credential_registry):
        for _ in range(5):
            accounting_service.authorize_call("user-1")
        assert not accounting_service.authorize_call("user-1").allowed

        credential_registry.set_personal_credential("user-1", "sk-own")

        result = accounting_service.authorize_call("user-1")
        assert result.allowed
        assert result.reason == AuthorizationReason.BYPASS

    def test_removing_credential_restores_previous_consumption(self, accounting_service, credential_registry):
        for _ in range(3):
            accounting_service.authorize_call("user-1")
        credential_registry.set_personal_credential("user-1", "sk-own")
        for _ in range(4):
            accounting_service.authorize_call("user-1")

        credential_registry.set_personal_credential("user-1", None)

        stats = accounting_service.get_stats("user-1")
        assert stats.used == 3
        assert not stats.bypass_active
        assert accounting_service.authorize_call("user-1").remaining == 1

    def test_period_rollover_resets_quota(self, accounting_service, clock):
        for _ in range(5):
            accounting_service.authorize_call("user-1")
        assert not accounting_service.authorize_call("user-1").allowed

        clock.now = clock.now + timedelta(days=1)

        result = accounting_service.authorize_call("user-1")
        assert result.allowed
        assert result.used == 1

    def test_concurrent_calls_allow_exactly_limit(self, accounting_service):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: accounting_service.authorize_call("user-1"), range(12)))

        assert sum(r.allowed for r in results) == 5
        assert sum(r.reason == AuthorizationReason.QUOTA_EXCEEDED for r in results) == 7

    def test_ledger_outage_fails_closed(self, credential_registry, period_clock):
        service = _service(credential_registry, UnavailableLedger(), period_clock)

        result = service.authorize_call("user-1")

        assert not result.allowed
        assert result.reason == AuthorizationReason.STORE_UNAVAILABLE

    def test_registry_outage_fails_closed(self, usage_ledger, period_clock):
        service = _service(UnavailableRegistry(), usage_ledger, period_clock)

        result = service.authorize_call("user-1")

        assert not result.allowed
        assert result.reason == AuthorizationReason.STORE_UNAVAILABLE


# =============================================================================
# require_call
# =============================================================================


class TestRequireCall:
    def test_raises_quota_exceeded(self, accounting_service):
        for _ in range(5):
            accounting_service.require_call("user-1")

        with pytest.raises(QuotaExceededError) as exc_info:
            accounting_service.require_call("user-1")

        assert exc_info.value.limit == 5
        assert exc_info.value.used == 5
        assert exc_info.value.resets_at == datetime(2025, 3, 15, tzinfo=timezone.utc)

    def test_raises_unknown_model(self, accounting_service):
        with pytest.raises(UnknownModelError):
            accounting_service.require_call("user-1", "mystery-model")

    def test_raises_store_unavailable(self, credential_registry, period_clock):
        service = _service(credential_registry, UnavailableLedger(), period_clock)

        with pytest.raises(StoreUnavailableError):
            service.require_call("user-1")


# =============================================================================
# Stats
# =============================================================================


class TestStats:
    def test_three_of_five(self, accounting_service):
        for _ in range(3):
            accounting_service.authorize_call("user-1")

        stats = accounting_service.get_stats("user-1")

        assert (stats.used, stats.limit, stats.remaining, stats.bypass_active) == (3, 5, 2, False)
        assert stats.period_key == "2025-03-14"

    def test_stats_do_not_consume(self, accounting_service):
        for _ in range(3):
            accounting_service.get_stats("user-1")

        assert accounting_service.get_stats("user-1").used == 0

    def test_stats_match_last_decision(self, accounting_service):
        result = accounting_service.authorize_call("user-1")
        stats = accounting_service.get_stats("user-1")

        assert stats.used == result.used
        assert stats.remaining == result.remaining

    def test_bypass_flag(self, accounting_service, credential_registry):
        credential_registry.set_personal_credential("user-1", "sk-own")

        assert accounting_service.get_stats("user-1").bypass_active

    def test_all_tiers(self, accounting_service):
        accounting_service.authorize_call("user-1", "gpt-5")

        stats = {s.tier: s for s in accounting_service.get_all_stats("user-1")}

        assert stats["premium"].used == 1
        assert stats["premium"].limit == 2
        assert stats["basic"].used == 0

    def test_unknown_tier(self, accounting_service):
        with pytest.raises(UnknownTierError):
            accounting_service.get_stats("user-1", "platinum")

    def test_store_outage_propagates(self, credential_registry, period_clock):
        service = _service(credential_registry, UnavailableLedger(), period_clock)

        with pytest.raises(StoreUnavailableError):
            service.get_stats("user-1")


def test_default_tier_needs_limit(credential_registry, usage_ledger, period_clock):
    with pytest.raises(ValueError):
        UsageAccountingService(
            credential_registry=credential_registry,
            usage_ledger=usage_ledger,
            period_clock=period_clock,
            quota_limits={"premium": 1},
            model_tiers={},
            default_tier="basic",
        )


def test_period_clock_uses_configured_timezone():
    instant = datetime(2025, 3, 14, 23, 30, tzinfo=timezone.utc)
    tokyo = QuotaPeriodClock("Asia/Tokyo", now=lambda: instant)
    los_angeles = QuotaPeriodClock("America/Los_Angeles", now=lambda: instant)

    assert tokyo.current_period_key() == "2025-03-15"
    assert los_angeles.current_period_key() == "2025-03-14"
    assert tokyo.next_reset().astimezone(timezone.utc) == datetime(2025, 3, 15, 15, 0, tzinfo=timezone.utc)


def test_quota_message_mentions_reset_time():
    resets_at = datetime(2025, 3, 15, tzinfo=timezone.utc)

    message = format_quota_exceeded_message("premium", 10, 10, resets_at)

    assert message == (
        "You've reached your daily limit of 10 Premium model messages (10/10). "
        "Your limit will reset tomorrow at 00:00 UTC."
    )
