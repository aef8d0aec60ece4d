import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def normalize_database_url(url: str) -> str:
    # Accept Heroku-style postgres:// and route it to the asyncpg driver
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


class Settings(BaseModel):
    # --- Database ---
    DATABASE_URL: str = Field(
        default_factory=lambda: os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./heatlog.db"),
        validate_default=True,
    )
    database_ssl: bool = Field(default_factory=lambda: _env_bool("DATABASE_SSL", False))
    database_ssl_verify: bool = Field(default_factory=lambda: _env_bool("DATABASE_SSL_VERIFY", False))
    db_echo: bool = Field(default_factory=lambda: _env_bool("DB_ECHO", False))

    # --- HTTP ---
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "3001")))
    cors_origins: list[str] = Field(
        default_factory=lambda: [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    )

    # --- Reconciliation ---
    # strict: reject the whole call on any bad annotation; lenient: skip bad annotations
    annotation_policy: Literal["strict", "lenient"] = Field(
        default_factory=lambda: os.getenv("ANNOTATION_POLICY", "strict").lower(),
        validate_default=True,
    )
    reconcile_advisory_lock: bool = Field(default_factory=lambda: _env_bool("RECONCILE_ADVISORY_LOCK", True))

    # Logging
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    log_format: str = Field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))  # json or text

    @field_validator("DATABASE_URL")
    @classmethod
    def normalize_url(cls, value: str) -> str:
        return normalize_database_url(value)

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

settings = Settings()
