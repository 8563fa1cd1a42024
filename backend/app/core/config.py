"""Application configuration and settings management."""
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

PLACEHOLDER_SECRET = "change-me"


class Settings(BaseSettings):
    """Global application settings loaded from environment variables or .env."""

    model_config = SettingsConfigDict(
        env_file=(Path(__file__).resolve().parent.parent / ".." / ".env"),
        env_file_encoding="utf-8",
        env_prefix="EXCEL_VAULT_",
        extra="ignore",
    )

    app_name: str = "Excel Vault"
    environment: Literal["development", "production", "test"] = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    secret_key: str = PLACEHOLDER_SECRET

    # Database
    database_url: str = "sqlite+aiosqlite:///./excel_vault.db"
    db_pool_max_size: int = 3
    db_pool_min_idle: int = 0
    db_idle_timeout_seconds: float = 10.0
    db_connect_timeout_seconds: float = 5.0
    db_acquire_timeout_seconds: float = 20.0
    db_max_uses_per_connection: int = 3000
    db_statement_timeout_seconds: float = 15.0
    db_ssl_required: bool | None = None  # None follows the environment
    db_query_max_attempts: int = 3
    db_retry_delay_seconds: float = 1.0
    pool_monitor_interval_seconds: int = 60  # 0 disables

    # Security
    access_token_expire_minutes: int = 60
    default_admin_password: str = "admin123"
    default_guest_password: str = "guest123"
    allowed_origins: Annotated[List[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024

    # Rate limits (requests per window)
    login_rate_limit: int = 5
    login_rate_window_seconds: int = 15 * 60
    upload_rate_limit: int = 3
    upload_rate_window_seconds: int = 5 * 60
    general_rate_limit: int = 100
    general_rate_window_seconds: int = 60

    # Front-end
    static_dir: str | None = str(Path(__file__).resolve().parent.parent.parent.parent / "public")

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: List[str] | str) -> List[str]:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def ssl_required(self) -> bool:
        if self.db_ssl_required is None:
            return self.is_production
        return self.db_ssl_required

    def validate_for_startup(self) -> None:
        """Refuse to boot a production instance with the placeholder signing secret."""

        if not self.database_url:
            raise RuntimeError("EXCEL_VAULT_DATABASE_URL is not configured")
        if self.is_production and self.secret_key in {PLACEHOLDER_SECRET, ""}:
            raise RuntimeError(
                "EXCEL_VAULT_SECRET_KEY must be set to a non-placeholder value in production"
            )


@lru_cache
def get_settings() -> Settings:
    """Return memoized settings instance."""

    return Settings()
