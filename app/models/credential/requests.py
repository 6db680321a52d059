from pydantic import BaseModel, Field


class SetPersonalCredentialRequest(BaseModel):
    api_key: str = Field(..., min_length=1, description="Personal provider credential")
    key_name: str | None = Field(None, description="Display name for the credential")
