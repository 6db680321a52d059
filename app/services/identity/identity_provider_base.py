from abc import abstractmethod, ABC

from app.models.access import ProviderSession, RequestCredentials


class IdentityProvider(ABC):
    """Abstract base class for session-backed identity providers"""

    @abstractmethod
    async def get_session(self, credentials: RequestCredentials) -> ProviderSession:
        """
        Resolve the user behind the request credentials.
        When the access token is missing or expired and a refresh token is present,
        implementations refresh the session and return the rotated tokens in `refreshed`.
        Returns a session with `user_id=None` when the credentials are not valid.
        Raises ProviderUnavailableError when the provider cannot answer.
        """
        pass

    @abstractmethod
    async def refresh_session(self, refresh_token: str) -> ProviderSession:
        """
        Exchange a refresh token for a new token pair.
        Returns a session with `user_id=None` when the refresh token is rejected.
        Raises ProviderUnavailableError when the provider cannot answer.
        """
        pass
