from fastapi import APIRouter, HTTPException, status

from app.api.dependencies import AuthContextDep, UsageAccountingServiceDep
from app.core.exceptions import (
    QuotaExceededError,
    StoreUnavailableError,
    UnknownModelError,
    UnknownTierError,
)
from app.models.usage.requests import AuthorizeCallRequest
from app.models.usage.responses import (
    AllUsageStatsResponse,
    AuthorizeCallResponse,
    UsageStatsResponse,
)

router = APIRouter(
    prefix="/usage",
    tags=["usage"],
)


def _store_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Failed to fetch usage statistics",
    )


@router.get("/stats", response_model=UsageStatsResponse)
def get_usage_stats(
    context: AuthContextDep,
    usage_accounting_service: UsageAccountingServiceDep,
    tier: str | None = None,
) -> UsageStatsResponse:
    """Quota snapshot for the authenticated user in the current period."""
    try:
        stats = usage_accounting_service.get_stats(context.user_id, tier)
    except UnknownTierError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreUnavailableError:
        raise _store_unavailable()

    return stats.to_response()


@router.get("/stats/all", response_model=AllUsageStatsResponse)
def get_all_usage_stats(
    context: AuthContextDep,
    usage_accounting_service: UsageAccountingServiceDep,
) -> AllUsageStatsResponse:
    try:
        all_stats = usage_accounting_service.get_all_stats(context.user_id)
    except StoreUnavailableError:
        raise _store_unavailable()

    return AllUsageStatsResponse(tiers=[stats.to_response() for stats in all_stats])


@router.post("/authorize", response_model=AuthorizeCallResponse)
def authorize_call(
    request_body: AuthorizeCallRequest,
    context: AuthContextDep,
    usage_accounting_service: UsageAccountingServiceDep,
) -> AuthorizeCallResponse:
    """
    Authorize one metered call for the authenticated user.

    The call counts against the user's daily quota unless a personal
    credential is registered. Call this right before invoking the model.
    """
    try:
        result = usage_accounting_service.require_call(context.user_id, request_body.model)
    except QuotaExceededError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "reason": "quota_exceeded",
                "message": str(e),
                "tier": e.tier,
                "used": e.used,
                "limit": e.limit,
                "resetsAt": e.resets_at.isoformat(),
            },
        )
    except UnknownModelError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"reason": "unknown_model", "message": str(e)},
        )
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"reason": "store_unavailable", "message": str(e)},
        )

    return result.to_response()
