from pydantic import BaseModel, Field


class AuthorizeCallRequest(BaseModel):
    model: str | None = Field(None, description="Model the metered call will use; the default tier applies when omitted")
