from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UsageStatsResponse(BaseModel):
    """Quota snapshot for one tier in the current period"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    used: int = Field(..., description="Metered calls consumed this period")
    limit: int = Field(..., description="Metered calls allowed this period")
    remaining: int = Field(..., description="Metered calls left this period")
    bypass_active: bool = Field(..., description="Whether a personal credential exempts the user from metering")
    tier: str = Field(..., description="Model tier the counter belongs to")
    period_key: str = Field(..., description="Current period (calendar day in the quota timezone)")
    resets_at: datetime = Field(..., description="When the next period starts")


class AllUsageStatsResponse(BaseModel):
    tiers: list[UsageStatsResponse]


class AuthorizeCallResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    allowed: bool
    reason: str
    tier: str | None = None
    used: int | None = None
    limit: int | None = None
    remaining: int | None = None
    resets_at: datetime | None = None
    message: str | None = None
