from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from app.models.usage.responses import AuthorizeCallResponse, UsageStatsResponse


class AuthorizationReason(str, Enum):
    BYPASS = "bypass"
    METERED = "metered"
    QUOTA_EXCEEDED = "quota_exceeded"
    STORE_UNAVAILABLE = "store_unavailable"
    UNKNOWN_MODEL = "unknown_model"


@dataclass
class UsageCounter:
    user_id: str
    tier: str
    period_start: date
    count_used: int
    limit: int


@dataclass(frozen=True)
class ConsumeResult:
    allowed: bool
    remaining: int
    used: int


@dataclass(frozen=True)
class AuthorizationResult:
    allowed: bool
    reason: AuthorizationReason
    tier: str | None = None
    used: int | None = None
    limit: int | None = None
    remaining: int | None = None
    resets_at: datetime | None = None
    message: str | None = None

    def to_response(self) -> AuthorizeCallResponse:
        return AuthorizeCallResponse(
            allowed=self.allowed,
            reason=self.reason.value,
            tier=self.tier,
            used=self.used,
            limit=self.limit,
            remaining=self.remaining,
            resets_at=self.resets_at,
            message=self.message,
        )


@dataclass(frozen=True)
class UsageStats:
    used: int
    limit: int
    remaining: int
    bypass_active: bool
    tier: str
    period_key: str
    resets_at: datetime

    def to_response(self) -> UsageStatsResponse:
        return UsageStatsResponse(
            used=self.used,
            limit=self.limit,
            remaining=self.remaining,
            bypass_active=self.bypass_active,
            tier=self.tier,
            period_key=self.period_key,
            resets_at=self.resets_at,
        )
