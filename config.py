from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

INSECURE_JWT_SECRETS = (
    "dev-secret",
    "change-me-in-production",
    "change-me-to-random-string",
    "your-secret-key-here",
)


class Settings(BaseSettings):
    """Process-wide configuration, read from the environment once at startup."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Database
    DATABASE_URL: str = "sqlite:///data/aipix.db"

    # Sessions and single-use tokens
    JWT_SECRET: str = "dev-secret"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = Field(default=60, gt=0)
    TOKEN_TTL_MINUTES: int = Field(default=60, gt=0)
    MFA_ISSUER: str = "AIPIX"

    # Links in outgoing emails point at the frontend
    APP_BASE_URL: str = "http://localhost:3000"

    # SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SENDER_EMAIL: Optional[str] = None
    SENDER_NAME: str = "AIPIX"
    SMTP_USE_TLS: bool = True

    # Object storage
    AWS_REGION: str = "us-east-1"
    S3_BUCKET_NAME: Optional[str] = None
    S3_KEY_PREFIX: str = "aipix/uploads"

    # HTTP
    CORS_ORIGINS: str = "*"
    RATE_LIMIT_ENABLED: bool = True

    # First-run admin
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST and self.SENDER_EMAIL)

    @property
    def jwt_secret_is_insecure(self) -> bool:
        return self.JWT_SECRET in INSECURE_JWT_SECRETS


@lru_cache
def get_settings() -> Settings:
    return Settings()
