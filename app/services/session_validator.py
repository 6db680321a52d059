import logging

from app.core.exceptions import ProviderUnavailableError
from app.models.access import ANONYMOUS, RequestCredentials, SessionValidation
from app.services.identity.identity_provider_base import IdentityProvider

logger = logging.getLogger(__name__)


class SessionValidator:
    """Resolves request credentials to a user, treating any provider failure as anonymous"""

    def __init__(self, identity_provider: IdentityProvider) -> None:
        self.identity_provider = identity_provider

    async def validate(self, credentials: RequestCredentials) -> SessionValidation:
        if credentials.is_empty:
            return ANONYMOUS

        try:
            session = await self.identity_provider.get_session(credentials)
        except ProviderUnavailableError as e:
            logger.warning("Identity provider unavailable, treating request as anonymous: %s", e)
            return ANONYMOUS

        if session.user_id is None:
            return ANONYMOUS

        return SessionValidation(user_id=session.user_id, refreshed=session.refreshed)
