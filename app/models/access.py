from dataclasses import dataclass
from enum import Enum


class RouteClass(str, Enum):
    PROTECTED = "protected"
    AUTH_ONLY = "auth_only"
    PUBLIC = "public"


@dataclass(frozen=True)
class SessionTokens:
    """Access/refresh token pair issued by the identity provider"""
    access_token: str
    refresh_token: str | None = None


@dataclass(frozen=True)
class RequestCredentials:
    """Session material extracted from an incoming request"""
    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.access_token and not self.refresh_token


@dataclass(frozen=True)
class ProviderSession:
    """Result of a provider session lookup; user_id is None when the token is not valid"""
    user_id: str | None
    refreshed: SessionTokens | None = None


@dataclass(frozen=True)
class SessionValidation:
    user_id: str | None
    refreshed: SessionTokens | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


ANONYMOUS = SessionValidation(user_id=None)


@dataclass(frozen=True)
class AccessDecision:
    allow: bool
    redirect_to: str | None = None
    refreshed: SessionTokens | None = None
    user_id: str | None = None
