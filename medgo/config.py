"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="MedGo Dispatch API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # Redis
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_decode_responses: bool = Field(default=True, alias="REDIS_DECODE_RESPONSES")

    # JWT
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Firebase (push channel)
    firebase_credentials_path: str | None = Field(
        default=None,
        alias="FIREBASE_CREDENTIALS_PATH",
        description="Path to Firebase service account JSON file",
    )
    firebase_config_json: str | None = Field(
        default=None,
        alias="FIREBASE_CONFIG_JSON",
        description="Raw JSON string of the Firebase service account",
    )

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Rate Limiting (dispatch calls per user per minute)
    rate_limit_per_minute: int = Field(default=5, alias="RATE_LIMIT_PER_MINUTE")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    # Dispatch
    dispatch_policy: Literal["radius", "broadcast"] = Field(
        default="radius",
        alias="DISPATCH_POLICY",
        description="radius: notify drivers within the radius; broadcast: notify all available",
    )
    dispatch_radius_km: float = Field(default=5.0, gt=0, alias="DISPATCH_RADIUS_KM")
    max_dispatch_radius_km: float = Field(default=50.0, gt=0, alias="MAX_DISPATCH_RADIUS_KM")
    sms_max_recipients: int = Field(default=3, ge=0, alias="SMS_MAX_RECIPIENTS")
    emergency_phone_number: str = Field(default="108", alias="EMERGENCY_PHONE_NUMBER")

    # Outbound channels
    fast2sms_api_key: str = Field(default="", alias="FAST2SMS_API_KEY")
    fast2sms_url: str = Field(default="https://www.fast2sms.com/dev/bulkV2", alias="FAST2SMS_URL")
    fast2sms_sender_id: str = Field(default="FSTSMS", alias="FAST2SMS_SENDER_ID")
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    resend_url: str = Field(default="https://api.resend.com/emails", alias="RESEND_URL")
    resend_from_email: str = Field(
        default="MedGo Alerts <alerts@medgo.app>", alias="RESEND_FROM_EMAIL"
    )
    callmebot_api_key: str = Field(default="", alias="CALLMEBOT_API_KEY")
    callmebot_phone: str = Field(default="", alias="CALLMEBOT_PHONE")
    callmebot_url: str = Field(
        default="https://api.callmebot.com/whatsapp.php", alias="CALLMEBOT_URL"
    )
    external_http_timeout: float = Field(default=10.0, gt=0, alias="EXTERNAL_HTTP_TIMEOUT")

    # Realtime
    realtime_queue_size: int = Field(default=100, ge=1, alias="REALTIME_QUEUE_SIZE")
    realtime_redis_channel: str = Field(default="medgo:changes", alias="REALTIME_REDIS_CHANNEL")
    realtime_redis_enabled: bool = Field(default=True, alias="REALTIME_REDIS_ENABLED")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
