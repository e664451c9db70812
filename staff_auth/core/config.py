"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from staff_auth.core.exceptions import SigningKeyUnavailableError

BASE_DIR = Path(__file__).resolve().parents[2]

HMAC_ALGORITHMS = {"HS256", "HS384", "HS512"}


class Settings(BaseSettings):
    APP_NAME: str = "Staff Session Core"
    ENV: str = "development"

    DATABASE_URL: str = "postgresql+psycopg://postgres@localhost:5432/staff_dashboard"

    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_MIN_SECRET_LENGTH: int = 32
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_TOKEN_BYTES: int = 64

    TOKEN_CLEANUP_ENABLED: bool = True
    TOKEN_CLEANUP_INTERVAL_SECONDS: int = 3600
    TOKEN_RETENTION_DAYS: int = 1

    LOG_LEVEL: str = "INFO"
    AUDIT_LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    model_config = SettingsConfigDict(env_file=str(BASE_DIR / ".env"), env_file_encoding="utf-8")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENV.strip().lower() == "production"

    def validate_runtime_security(self) -> None:
        secret = (self.JWT_SECRET or "").strip()
        if not secret:
            raise SigningKeyUnavailableError("JWT_SECRET is not configured")
        if len(secret) < self.JWT_MIN_SECRET_LENGTH:
            raise SigningKeyUnavailableError(
                f"JWT_SECRET must be at least {self.JWT_MIN_SECRET_LENGTH} characters",
            )
        if self.JWT_ALGORITHM not in HMAC_ALGORITHMS:
            raise SigningKeyUnavailableError(f"Unsupported JWT_ALGORITHM: {self.JWT_ALGORITHM}")


settings = Settings()
