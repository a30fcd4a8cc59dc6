from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    environment: str = "dev"
    log_level: str = "INFO"

    api_key: str
    api_secret_key: str
    scope: str = ""
    api_version: str = "2024-10"
    myshopify_domain: str = "myshopify.com"

    embedded_app: bool = True
    login_url: str = "/login"
    root_url: str = "/"

    session_store_mode: str = "memory"
    user_session_storage: bool = False
    redis_endpoint: str | None = None
    redis_encryption_key: str | None = None

    session_cookie_name: str = "shopify_app_session"
    state_cookie_name: str = "shopify_app_state"

    jwt_leeway_seconds: int = 10
    jwt_expire_gap_seconds: int = 5

    http_timeout_seconds: float = 10.0

    disable_otel: bool = False
    otel_exporter_otlp_endpoint: str | None = None
    datadog_api_key: str | None = None

    @model_validator(mode="after")
    def validate_session_store_mode(self) -> "Settings":
        if self.session_store_mode.lower() == "redis":
            if not self.redis_endpoint:
                raise ValueError(
                    "REDIS_ENDPOINT is required when SESSION_STORE_MODE=redis"
                )
            if not self.redis_encryption_key:
                raise ValueError(
                    "REDIS_ENCRYPTION_KEY is required when SESSION_STORE_MODE=redis"
                )
        return self


settings = Settings()
