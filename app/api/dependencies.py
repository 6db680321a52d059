from typing import Annotated

from fastapi import Depends, Request

from app.db.credential_repo import CredentialRepo
from app.db.database import Database
from app.db.usage_counter_repo import UsageCounterRepo
from app.request_context import RequestContext
from app.services.access_gateway import AccessGateway
from app.services.auth_service import AuthService
from app.services.credential_registry import CredentialRegistry
from app.services.identity.supabase_identity_provider import SupabaseIdentityProvider
from app.services.quota_period import QuotaPeriodClock
from app.services.route_classifier import RouteClassifier
from app.services.session_validator import SessionValidator
from app.services.usage_accounting_service import UsageAccountingService
from app.services.usage_ledger import UsageLedger
from app.settings import settings

# Singleton instances
_database_instance = Database()
_credential_repo_instance = CredentialRepo(_database_instance)
_usage_counter_repo_instance = UsageCounterRepo(_database_instance)
_identity_provider_instance = SupabaseIdentityProvider(
    base_url=settings.identity_provider_url,
    api_key=settings.identity_provider_api_key,
    timeout_seconds=settings.identity_provider_timeout_seconds,
)
_session_validator_instance = SessionValidator(_identity_provider_instance)
_route_classifier_instance = RouteClassifier(
    protected_prefixes=settings.protected_prefixes,
    auth_only_prefixes=settings.auth_only_prefixes,
)
_access_gateway_instance = AccessGateway(
    session_validator=_session_validator_instance,
    route_classifier=_route_classifier_instance,
    sign_in_path=settings.sign_in_path,
    landing_path=settings.landing_path,
)
_auth_service_instance = AuthService(
    session_validator=_session_validator_instance,
    session_cookie_name=settings.session_cookie_name,
    refresh_cookie_name=settings.refresh_cookie_name,
)
_credential_registry_instance = CredentialRegistry(_credential_repo_instance)
_usage_ledger_instance = UsageLedger(
    _usage_counter_repo_instance,
    max_retries=settings.ledger_max_retries,
)
_quota_period_clock_instance = QuotaPeriodClock(settings.quota_timezone)
_usage_accounting_service_instance = UsageAccountingService(
    credential_registry=_credential_registry_instance,
    usage_ledger=_usage_ledger_instance,
    period_clock=_quota_period_clock_instance,
    quota_limits=settings.quota_limits,
    model_tiers=settings.model_tiers,
    default_tier=settings.default_tier,
)


def get_database() -> Database:
    """Get the singleton Database instance"""
    return _database_instance


def get_access_gateway() -> AccessGateway:
    """Get the singleton AccessGateway instance"""
    return _access_gateway_instance


def get_auth_service() -> AuthService:
    """Get the singleton AuthService instance"""
    return _auth_service_instance


def get_credential_registry() -> CredentialRegistry:
    """Get the singleton CredentialRegistry instance"""
    return _credential_registry_instance


def get_usage_accounting_service() -> UsageAccountingService:
    """Get the singleton UsageAccountingService instance"""
    return _usage_accounting_service_instance


async def get_auth_context(
    request: Request,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> RequestContext:
    """Authenticate request and return context. Responds 401 without a valid session."""
    return await auth_service.authenticate(request)


# Type annotations for dependencies
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
CredentialRegistryDep = Annotated[CredentialRegistry, Depends(get_credential_registry)]
UsageAccountingServiceDep = Annotated[UsageAccountingService, Depends(get_usage_accounting_service)]
AuthContextDep = Annotated[RequestContext, Depends(get_auth_context)]
