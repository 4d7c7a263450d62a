"""
FILE: src/core/config.py
Application settings — loaded once from the environment / .env
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide configuration. Instantiated once at import time."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application
    APP_NAME: str = "Clinic Access API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    RELOAD: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    # Database
    DATABASE_URL: str = "sqlite:///./clinic.db"
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Session tokens
    JWT_SECRET_KEY: str = Field(..., min_length=32)
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "clinic-api"
    JWT_AUDIENCE: str = "clinic-frontend"
    JWT_ACCESS_TOKEN_TTL_SECONDS: int = 3600
    JWT_REFRESH_WINDOW_SECONDS: int = 900

    # Password hashing (argon2)
    ARGON2_TIME_COST: int = 3
    ARGON2_MEMORY_COST: int = 65536  # KiB
    ARGON2_PARALLELISM: int = 4

    # OTP
    OTP_TTL_SECONDS: int = 300
    OTP_MAX_ATTEMPTS: int = 5
    OTP_RESEND_INTERVAL_SECONDS: int = 60
    OTP_PURGE_GRACE_SECONDS: int = 300
    OTP_SWEEP_INTERVAL_SECONDS: int = 300

    # Login throttling
    LOGIN_MAX_FAILURES: int = 10
    LOGIN_FAILURE_WINDOW_SECONDS: int = 900

    # Password login without the OTP step. Never honoured in production.
    DEV_LOGIN_ENABLED: bool = False

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def secret_key_length(cls, v: str) -> str:
        if len(v.encode("utf-8")) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 bytes")
        return v

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def symmetric_algorithm_only(cls, v: str) -> str:
        if v not in ("HS256", "HS384", "HS512"):
            raise ValueError("JWT_ALGORITHM must be one of HS256, HS384, HS512")
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()  # type: ignore[call-arg]
