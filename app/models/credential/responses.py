from datetime import datetime
from pydantic import BaseModel, Field


class PersonalCredentialInfoResponse(BaseModel):
    """Credential metadata (never the credential itself)"""
    key_name: str = Field(..., description="Display name of the credential")
    fingerprint: str = Field(..., description="Short SHA-256 fingerprint of the credential")
    created_at: datetime = Field(..., description="When the credential was first registered")
    updated_at: datetime = Field(..., description="When the credential was last replaced")
    last_used_at: datetime | None = Field(None, description="When the credential last bypassed metering")


class PersonalCredentialStatusResponse(BaseModel):
    has_key: bool = Field(..., description="Whether a personal credential is registered")
    key_info: PersonalCredentialInfoResponse | None = Field(None, description="Credential metadata")


class PersonalCredentialChangedResponse(BaseModel):
    success: bool
    message: str
