from fastapi import HTTPException, status, Request

from app.models.access import AccessDecision, RequestCredentials
from app.request_context import RequestContext
from app.services.session_validator import SessionValidator

BEARER_PREFIX = "bearer "


def extract_credentials(request: Request, session_cookie_name: str, refresh_cookie_name: str) -> RequestCredentials:
    """Read session tokens from the bearer header, falling back to session cookies"""
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith(BEARER_PREFIX):
        access_token = authorization[len(BEARER_PREFIX):].strip() or None
    else:
        access_token = request.cookies.get(session_cookie_name)

    return RequestCredentials(
        access_token=access_token,
        refresh_token=request.cookies.get(refresh_cookie_name),
    )


class AuthService:
    """Service for handling authentication and creating request contexts"""

    def __init__(
        self,
        session_validator: SessionValidator,
        session_cookie_name: str,
        refresh_cookie_name: str,
    ) -> None:
        self.session_validator = session_validator
        self.session_cookie_name = session_cookie_name
        self.refresh_cookie_name = refresh_cookie_name

    async def authenticate(self, request: Request) -> RequestContext:
        """
        Authenticate a request and return RequestContext.

        Reuses the decision made by the access gateway stage for this request
        when there is one, so the identity provider is asked only once.

        Raises:
            HTTPException: 401 if there is no valid session
        """
        decision: AccessDecision | None = getattr(request.state, "access_decision", None)
        if decision is not None:
            user_id = decision.user_id
        else:
            credentials = extract_credentials(request, self.session_cookie_name, self.refresh_cookie_name)
            session = await self.session_validator.validate(credentials)
            user_id = session.user_id

        if user_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )

        return RequestContext(user_id=user_id)
