import logging
from typing import Any

import httpx

from app.core.exceptions import ProviderUnavailableError
from app.models.access import ProviderSession, RequestCredentials, SessionTokens
from app.services.identity.identity_provider_base import IdentityProvider

logger = logging.getLogger(__name__)


def _is_token(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


class SupabaseIdentityProvider(IdentityProvider):
    """Identity provider backed by the Supabase (GoTrue) auth REST API"""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            transport=self._transport,
            headers={"apikey": self.api_key},
        )

    async def get_session(self, credentials: RequestCredentials) -> ProviderSession:
        if credentials.access_token:
            user_id = await self._get_user_id(credentials.access_token)
            if user_id is not None:
                return ProviderSession(user_id=user_id)

        if credentials.refresh_token:
            return await self.refresh_session(credentials.refresh_token)

        return ProviderSession(user_id=None)

    async def refresh_session(self, refresh_token: str) -> ProviderSession:
        data = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if data is None:
            return ProviderSession(user_id=None)

        user = data.get("user")
        user_id = user.get("id") if isinstance(user, dict) else None
        access_token = data.get("access_token")
        if not _is_token(user_id) or not _is_token(access_token):
            raise ProviderUnavailableError("Malformed refresh response from identity provider")

        rotated_refresh = data.get("refresh_token")
        logger.debug("Session refreshed for user %s", user_id)
        return ProviderSession(
            user_id=user_id,
            refreshed=SessionTokens(
                access_token=access_token,
                refresh_token=rotated_refresh if _is_token(rotated_refresh) else refresh_token,
            ),
        )

    async def _get_user_id(self, access_token: str) -> str | None:
        data = await self._request(
            "GET",
            "/auth/v1/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if data is None:
            return None

        user_id = data.get("id")
        if not _is_token(user_id):
            raise ProviderUnavailableError("Malformed user response from identity provider")
        return user_id

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any] | None:
        """Send a request; None means the provider rejected the token"""
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(f"Identity provider timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Identity provider request failed: {e}") from e

        if response.status_code in (400, 401, 403, 404):
            return None

        try:
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPStatusError, ValueError) as e:
            raise ProviderUnavailableError(f"Identity provider returned an invalid response: {e}") from e

        if not isinstance(data, dict):
            raise ProviderUnavailableError(
                f"Identity provider returned {type(data).__name__} instead of a JSON object"
            )
        return data
