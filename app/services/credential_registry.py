import hashlib
import logging

from app.core.exceptions import StoreUnavailableError
from app.db.credential_repo import CredentialRepo
from app.models.personal_credential import CredentialRecord

DEFAULT_KEY_NAME = "OpenAI API Key"

logger = logging.getLogger(__name__)


class CredentialRegistry:
    """Tracks which users have registered a personal provider credential

    Only presence and a fingerprint are kept; the secret itself belongs to
    the secret-storage collaborator.
    """

    def __init__(self, credential_repo: CredentialRepo) -> None:
        self.credential_repo = credential_repo

    def fingerprint(self, credential: str) -> str:
        """Hash a credential using SHA-256"""
        return hashlib.sha256(credential.encode()).hexdigest()

    def has_personal_credential(self, user_id: str) -> bool:
        return self.credential_repo.exists(user_id)

    def set_personal_credential(self, user_id: str, credential: str | None, key_name: str | None = None) -> None:
        """Register, replace, or (with `credential=None`) clear the user's credential"""
        if credential is None:
            removed = self.credential_repo.delete(user_id)
            if removed:
                logger.info("Personal credential removed for user %s", user_id)
            return

        self.credential_repo.upsert(
            user_id=user_id,
            key_name=key_name or DEFAULT_KEY_NAME,
            credential_fingerprint=self.fingerprint(credential),
        )
        logger.info("Personal credential registered for user %s", user_id)

    def get_record(self, user_id: str) -> CredentialRecord | None:
        return self.credential_repo.get_by_user_id(user_id)

    def mark_used(self, user_id: str) -> None:
        # Bookkeeping only, must not block the call
        try:
            self.credential_repo.touch_last_used(user_id)
        except StoreUnavailableError as e:
            logger.warning("Failed to update last_used_at for user %s: %s", user_id, e)
