from datetime import datetime


class GatewayError(Exception):
    """Base class for access and metering failures"""
    pass


class ProviderUnavailableError(GatewayError):
    """Raised by identity provider clients when the provider cannot be reached or rejects the call"""
    pass


class StoreUnavailableError(GatewayError):
    """Raised when a persistence call fails or times out"""
    pass


class UnknownModelError(GatewayError):
    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Unknown model: {model}")


class UnknownTierError(GatewayError):
    def __init__(self, tier: str) -> None:
        self.tier = tier
        super().__init__(f"Unknown tier: {tier}")


class QuotaExceededError(GatewayError):
    """Raised when a metered call would exceed the user's quota for the current period"""

    def __init__(
        self,
        tier: str,
        limit: int,
        used: int,
        resets_at: datetime,
        message: str | None = None,
    ) -> None:
        if message is None:
            message = f"Usage limit exceeded for {tier}: {used}/{limit}"
        self.tier = tier
        self.limit = limit
        self.used = used
        self.resets_at = resets_at
        super().__init__(message)
