from urllib.parse import urlparse

from pydantic import AliasChoices, AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _cors_origin_from_url(value: str | None) -> str | None:
    if not value:
        return None
    raw = value.strip()
    if not raw:
        return None
    parsed = urlparse(raw)
    scheme = (parsed.scheme or "").lower().strip()
    if scheme not in {"http", "https"}:
        return None
    hostname = (parsed.hostname or "").strip()
    if not hostname:
        return None
    port = parsed.port
    if port and not ((scheme == "http" and port == 80) or (scheme == "https" and port == 443)):
        return f"{scheme}://{hostname}:{port}"
    return f"{scheme}://{hostname}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env", "../.env"), extra="ignore")

    supabase_url: AnyUrl | None = None
    supabase_jwks_url: AnyUrl | None = Field(
        default=None, validation_alias=AliasChoices("SUPABASE_JWKS_URL")
    )
    supabase_jwt_issuer: str | None = Field(
        default=None, validation_alias=AliasChoices("SUPABASE_JWT_ISSUER")
    )
    supabase_db_url: AnyUrl | None = None
    database_url: AnyUrl | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    frontend_base_url: str | None = "http://localhost:3000"
    checkout_success_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "CHECKOUT_SUCCESS_URL",
            "STRIPE_CHECKOUT_SUCCESS_URL",
        ),
    )
    checkout_cancel_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CHECKOUT_CANCEL_URL", "STRIPE_CHECKOUT_CANCEL_URL"),
    )
    stripe_secret_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "STRIPE_SECRET_KEY",
            "STRIPE_TEST_SECRET_KEY",
            "STRIPE_LIVE_SECRET_KEY",
        ),
    )
    stripe_webhook_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "STRIPE_WEBHOOK_SECRET",
            "STRIPE_TEST_WEBHOOK_SECRET",
            "STRIPE_LIVE_WEBHOOK_SECRET",
        ),
    )
    default_currency: str = "usd"
    cron_secret: str | None = Field(default=None, validation_alias=AliasChoices("CRON_SECRET"))
    email_program_default_timezone: str = "America/New_York"
    video_render_url: str | None = Field(
        default=None, validation_alias=AliasChoices("VIDEO_RENDER_URL")
    )
    video_render_api_key: str | None = Field(
        default=None, validation_alias=AliasChoices("VIDEO_RENDER_API_KEY")
    )
    video_render_timeout_seconds: float = 120.0
    video_batch_max_briefs: int = 100
    meta_access_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("META_ACCESS_TOKEN", "META_CAPI_ACCESS_TOKEN"),
    )
    meta_ad_account_id: str | None = Field(
        default=None, validation_alias=AliasChoices("META_AD_ACCOUNT_ID")
    )
    meta_api_version: str = Field(
        default="v20.0", validation_alias=AliasChoices("META_API_VERSION")
    )
    meta_graph_base_url: str = "https://graph.facebook.com"
    cors_allow_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    cors_allow_origin_regex: str | None = r"http://(localhost|127\.0\.0\.1)(:\d+)?"
    sentry_dsn: str | None = Field(
        default=None, validation_alias=AliasChoices("SENTRY_DSN", "BACKEND_SENTRY_DSN")
    )
    sentry_traces_sample_rate: float = Field(
        default=0.0,
        validation_alias=AliasChoices(
            "SENTRY_TRACES_SAMPLE_RATE",
            "BACKEND_SENTRY_TRACES_SAMPLE_RATE",
        ),
    )
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _populate_database_url(self):
        if self.database_url is None:
            if self.supabase_db_url is None:
                raise ValueError("DATABASE_URL or SUPABASE_DB_URL is required")
            self.database_url = self.supabase_db_url

        frontend_origin = _cors_origin_from_url(self.frontend_base_url)
        if frontend_origin:
            existing = {origin.strip().lower() for origin in self.cors_allow_origins if origin}
            if frontend_origin.strip().lower() not in existing:
                self.cors_allow_origins.append(frontend_origin)

        return self

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


settings = Settings()
