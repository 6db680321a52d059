from app.models.access import AccessDecision, RequestCredentials, RouteClass
from app.services.route_classifier import RouteClassifier
from app.services.session_validator import SessionValidator


class AccessGateway:
    """Per-request allow/redirect decision from session state and route class"""

    def __init__(
        self,
        session_validator: SessionValidator,
        route_classifier: RouteClassifier,
        sign_in_path: str,
        landing_path: str,
    ) -> None:
        self.session_validator = session_validator
        self.route_classifier = route_classifier
        self.sign_in_path = sign_in_path
        self.landing_path = landing_path

    async def decide(self, credentials: RequestCredentials, path: str) -> AccessDecision:
        session = await self.session_validator.validate(credentials)
        route_class = self.route_classifier.classify(path)

        if route_class == RouteClass.PROTECTED and not session.is_authenticated:
            return AccessDecision(allow=False, redirect_to=self.sign_in_path, refreshed=session.refreshed)

        if route_class == RouteClass.AUTH_ONLY and session.is_authenticated:
            return AccessDecision(
                allow=False,
                redirect_to=self.landing_path,
                refreshed=session.refreshed,
                user_id=session.user_id,
            )

        return AccessDecision(allow=True, refreshed=session.refreshed, user_id=session.user_id)
