"""
Pytest fixtures for the gateway tests.

Settings are read at import time, so the environment is prepared before
anything from `app` is imported.
"""

import os
import tempfile
from datetime import datetime, timezone

os.environ.setdefault("QUOTA_TIMEZONE", "UTC")
os.environ.setdefault("DB_PATH", os.path.join(tempfile.mkdtemp(prefix="meterguard-"), "meterguard.db"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from app.core.exceptions import ProviderUnavailableError
from app.db.credential_repo import CredentialRepo
from app.db.database import Database
from app.db.usage_counter_repo import UsageCounterRepo
from app.models.access import ProviderSession, RequestCredentials, SessionTokens
from app.services.access_gateway import AccessGateway
from app.services.credential_registry import CredentialRegistry
from app.services.identity.identity_provider_base import IdentityProvider
from app.services.quota_period import QuotaPeriodClock
from app.services.route_classifier import RouteClassifier
from app.services.session_validator import SessionValidator
from app.services.usage_accounting_service import UsageAccountingService
from app.services.usage_ledger import UsageLedger

PROTECTED_PREFIXES = ["/dashboard", "/profile", "/upload", "/chat"]
AUTH_ONLY_PREFIXES = ["/auth/signin", "/auth/signup", "/auth/onboarding"]


# =============================================================================
# Fakes
# =============================================================================


class FakeIdentityProvider(IdentityProvider):
    """In-memory identity provider"""

    def __init__(self) -> None:
        self.users_by_access_token: dict[str, str] = {}
        self.refreshes: dict[str, SessionTokens] = {}
        self.users_by_refresh_token: dict[str, str] = {}
        self.unavailable = False
        self.calls: list[RequestCredentials] = []

    def add_session(self, access_token: str, user_id: str) -> None:
        self.users_by_access_token[access_token] = user_id

    def add_refresh(self, refresh_token: str, user_id: str, rotated: SessionTokens) -> None:
        self.users_by_refresh_token[refresh_token] = user_id
        self.refreshes[refresh_token] = rotated

    async def get_session(self, credentials: RequestCredentials) -> ProviderSession:
        self.calls.append(credentials)
        if self.unavailable:
            raise ProviderUnavailableError("provider down")

        user_id = self.users_by_access_token.get(credentials.access_token or "")
        if user_id is not None:
            return ProviderSession(user_id=user_id)
        if credentials.refresh_token:
            return await self.refresh_session(credentials.refresh_token)
        return ProviderSession(user_id=None)

    async def refresh_session(self, refresh_token: str) -> ProviderSession:
        if self.unavailable:
            raise ProviderUnavailableError("provider down")
        user_id = self.users_by_refresh_token.get(refresh_token)
        if user_id is None:
            return ProviderSession(user_id=None)
        return ProviderSession(user_id=user_id, refreshed=self.refreshes[refresh_token])


class MutableClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def database(tmp_path) -> Database:
    db = Database(str(tmp_path / "test.db"), timeout_seconds=5.0)
    db.setup()
    return db


@pytest.fixture
def credential_repo(database: Database) -> CredentialRepo:
    return CredentialRepo(database)


@pytest.fixture
def usage_counter_repo(database: Database) -> UsageCounterRepo:
    return UsageCounterRepo(database)


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def credential_registry(credential_repo: CredentialRepo) -> CredentialRegistry:
    return CredentialRegistry(credential_repo)


@pytest.fixture
def usage_ledger(usage_counter_repo: UsageCounterRepo) -> UsageLedger:
    return UsageLedger(usage_counter_repo, max_retries=3, retry_delay_seconds=0)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def period_clock(clock: MutableClock) -> QuotaPeriodClock:
    return QuotaPeriodClock("UTC", now=clock)


@pytest.fixture
def accounting_service(
    credential_registry: CredentialRegistry,
    usage_ledger: UsageLedger,
    period_clock: QuotaPeriodClock,
) -> UsageAccountingService:
    return UsageAccountingService(
        credential_registry=credential_registry,
        usage_ledger=usage_ledger,
        period_clock=period_clock,
        quota_limits={"basic": 5, "premium": 2},
        model_tiers={"gpt-5": "premium", "gpt-5-mini": "basic"},
        default_tier="basic",
    )


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def session_validator(identity_provider: FakeIdentityProvider) -> SessionValidator:
    return SessionValidator(identity_provider)


@pytest.fixture
def route_classifier() -> RouteClassifier:
    return RouteClassifier(PROTECTED_PREFIXES, AUTH_ONLY_PREFIXES)


@pytest.fixture
def access_gateway(session_validator: SessionValidator, route_classifier: RouteClassifier) -> AccessGateway:
    return AccessGateway(
        session_validator=session_validator,
        route_classifier=route_classifier,
        sign_in_path="/auth/signin",
        landing_path="/dashboard",
    )
