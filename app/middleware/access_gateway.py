from fastapi import Request, Response, status
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from app.models.access import SessionTokens
from app.services.access_gateway import AccessGateway
from app.services.auth_service import extract_credentials


def write_session_cookies(
    response: Response,
    tokens: SessionTokens,
    session_cookie_name: str,
    refresh_cookie_name: str,
    secure: bool,
) -> None:
    """Propagate a rotated session back to the client"""
    response.set_cookie(
        session_cookie_name,
        tokens.access_token,
        httponly=True,
        secure=secure,
        samesite="lax",
        path="/",
    )
    if tokens.refresh_token:
        response.set_cookie(
            refresh_cookie_name,
            tokens.refresh_token,
            httponly=True,
            secure=secure,
            samesite="lax",
            path="/",
        )


class AccessGatewayMiddleware(BaseHTTPMiddleware):
    """
    Request pipeline stage that runs the access gateway once per request.
    Denied requests are redirected; allowed requests pass through with the
    decision stored on `request.state.access_decision` for downstream handlers.
    """

    def __init__(
        self,
        app: ASGIApp,
        gateway: AccessGateway,
        session_cookie_name: str,
        refresh_cookie_name: str,
        secure_cookies: bool = True,
    ) -> None:
        super().__init__(app)
        self.gateway = gateway
        self.session_cookie_name = session_cookie_name
        self.refresh_cookie_name = refresh_cookie_name
        self.secure_cookies = secure_cookies

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        credentials = extract_credentials(request, self.session_cookie_name, self.refresh_cookie_name)
        decision = await self.gateway.decide(credentials, request.url.path)
        request.state.access_decision = decision

        if decision.allow:
            response = await call_next(request)
        else:
            response = RedirectResponse(
                url=decision.redirect_to or "/",
                status_code=status.HTTP_307_TEMPORARY_REDIRECT,
            )

        if decision.refreshed is not None:
            write_session_cookies(
                response,
                decision.refreshed,
                self.session_cookie_name,
                self.refresh_cookie_name,
                self.secure_cookies,
            )
        return response
