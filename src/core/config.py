"""Application configuration using pydantic-settings."""
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str

    # Bearer tokens are issued by the identity provider; we only validate them
    jwt_secret: str = Field(default="", validation_alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")

    # Development mode - bypasses auth for local development
    dev_mode: bool = Field(default=False, validation_alias="DEV_MODE")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    # Text-extraction service used for bookmark summaries
    summary_service_url: str = Field(
        default="https://r.jina.ai/", validation_alias="SUMMARY_SERVICE_URL",
    )
    summary_timeout: float = Field(default=15.0, validation_alias="SUMMARY_TIMEOUT")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Field length limits
    max_description_length: int = Field(
        default=2000, validation_alias="MAX_DESCRIPTION_LENGTH",
    )
    max_title_length: int = Field(default=500, validation_alias="MAX_TITLE_LENGTH")

    @model_validator(mode="after")
    def validate_dev_mode_security(self) -> "Settings":
        """
        Refuse DEV_MODE unless the database is SQLite or on this machine.

        DEV_MODE skips token checks entirely, so pointing it at a shared
        database would expose every user's bookmarks.
        """
        if self.dev_mode and not _is_local_database(self.database_url):
            raise ValueError(
                "DEV_MODE cannot be enabled with a non-local database "
                f"({self.database_url.split('@')[-1]}). Use SQLite or a localhost database.",
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Allowed origins from the comma-separated CORS_ORIGINS value."""
        return list(filter(None, (part.strip() for part in self.cors_origins_str.split(","))))


LOCAL_DATABASE_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})


def _is_local_database(database_url: str) -> bool:
    try:
        parsed = urlparse(database_url)
    except ValueError:
        return False
    if parsed.scheme.startswith("sqlite"):
        return True
    return (parsed.hostname or "").lower() in LOCAL_DATABASE_HOSTS


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
