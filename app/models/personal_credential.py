from dataclasses import dataclass
from datetime import datetime

from app.models.credential.responses import PersonalCredentialInfoResponse


@dataclass
class CredentialRecord:
    user_id: str
    key_name: str
    credential_fingerprint: str
    created_at: datetime
    updated_at: datetime
    last_used_at: datetime | None = None

    def to_response(self) -> PersonalCredentialInfoResponse:
        return PersonalCredentialInfoResponse(
            key_name=self.key_name,
            fingerprint=self.credential_fingerprint[:12],
            created_at=self.created_at,
            updated_at=self.updated_at,
            last_used_at=self.last_used_at,
        )
