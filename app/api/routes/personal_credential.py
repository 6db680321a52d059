from fastapi import APIRouter, HTTPException, status

from app.api.dependencies import AuthContextDep, CredentialRegistryDep
from app.core.exceptions import StoreUnavailableError
from app.models.credential.requests import SetPersonalCredentialRequest
from app.models.credential.responses import (
    PersonalCredentialChangedResponse,
    PersonalCredentialStatusResponse,
)


router = APIRouter(
    prefix="/personal-credential",
    tags=["personal-credential"],
)


@router.get("", response_model=PersonalCredentialStatusResponse)
def get_personal_credential(
    context: AuthContextDep,
    credential_registry: CredentialRegistryDep,
) -> PersonalCredentialStatusResponse:
    """
    Whether the authenticated user has a personal credential registered.

    The credential itself is never returned.
    """
    try:
        record = credential_registry.get_record(context.user_id)
    except StoreUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to fetch personal credential",
        )

    return PersonalCredentialStatusResponse(
        has_key=record is not None,
        key_info=record.to_response() if record else None,
    )


@router.post("", response_model=PersonalCredentialChangedResponse)
def set_personal_credential(
    request_body: SetPersonalCredentialRequest,
    context: AuthContextDep,
    credential_registry: CredentialRegistryDep,
) -> PersonalCredentialChangedResponse:
    """
    Register or replace the user's personal credential.

    While one is registered, metered calls are not counted against the quota.
    """
    try:
        credential_registry.set_personal_credential(
            context.user_id,
            request_body.api_key,
            key_name=request_body.key_name,
        )
    except StoreUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to store personal credential",
        )

    return PersonalCredentialChangedResponse(success=True, message="Personal credential saved successfully")


@router.delete("", response_model=PersonalCredentialChangedResponse)
def delete_personal_credential(
    context: AuthContextDep,
    credential_registry: CredentialRegistryDep,
) -> PersonalCredentialChangedResponse:
    try:
        credential_registry.set_personal_credential(context.user_id, None)
    except StoreUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to delete personal credential",
        )

    return PersonalCredentialChangedResponse(success=True, message="Personal credential deleted successfully")
