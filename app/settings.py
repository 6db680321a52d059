from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "MeterGuard Gateway"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    db_path: str = "data/meterguard.db"
    db_timeout_seconds: float = 5.0
    preserve_old_db: bool = False
    ledger_max_retries: int = 3

    identity_provider_url: str = "http://localhost:54321"
    identity_provider_api_key: str = ""
    identity_provider_timeout_seconds: float = 5.0
    session_cookie_name: str = "sb-access-token"
    refresh_cookie_name: str = "sb-refresh-token"
    session_cookie_secure: bool = True

    protected_prefixes: list[str] = ["/dashboard", "/profile", "/upload", "/chat"]
    auth_only_prefixes: list[str] = ["/auth/signin", "/auth/signup", "/auth/onboarding"]
    sign_in_path: str = "/auth/signin"
    landing_path: str = "/dashboard"

    # Calendar day boundaries for quota periods. No default on purpose.
    quota_timezone: str
    quota_limits: dict[str, int] = {"premium": 10, "basic": 50}
    model_tiers: dict[str, str] = {
        "gpt-5": "premium",
        "gpt-4.1": "premium",
        "gpt-5-mini": "basic",
        "gpt-4.1-mini": "basic",
    }
    default_tier: str = "basic"

    @field_validator("quota_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
