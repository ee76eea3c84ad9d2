"""Application configuration via environment variables."""

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
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./blast.db",
        description="SQLAlchemy connection string for the SQL metadata store",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    api_reload: bool = Field(default=False, description="Enable auto-reload for development")

    # Stores
    metadata_store: Literal["memory", "sql"] = Field(
        default="memory",
        description="Metadata/document store backend (memory, sql)",
    )
    blob_store: Literal["memory", "firebase"] = Field(
        default="memory",
        description="Blob/object store backend (memory, firebase)",
    )

    # Firebase Storage (for blob_store=firebase)
    firebase_bucket: str = Field(
        default="blast-dev.appspot.com",
        description="Firebase Storage bucket name",
    )
    firebase_api_base: str = Field(
        default="https://firebasestorage.googleapis.com/v0",
        description="Firebase Storage REST API base URL",
    )
    firebase_token: str | None = Field(
        default=None,
        description="Bearer token for Firebase Storage requests",
    )
    firebase_timeout: float = Field(
        default=120.0,
        description="HTTP timeout in seconds for Firebase Storage requests",
    )

    # Blob layout
    edit_prefix: str = Field(default="edits", description="Blob path prefix for edit assets")
    canonical_prefix: str = Field(
        default="videos",
        description="Blob path prefix for canonical video assets",
    )

    # Promotion
    promotion_strategy: Literal["new_version", "in_place"] = Field(
        default="new_version",
        description="How an accepted edit replaces the canonical video (new_version, in_place)",
    )
    promotion_lease_seconds: float = Field(
        default=600.0,
        description="How long an in-progress accept blocks others before it counts as crashed",
    )
    url_resolve_max_attempts: int = Field(
        default=5,
        description="Maximum attempts to resolve a public URL for a fresh upload",
    )
    url_resolve_settle_seconds: float = Field(
        default=2.0,
        description="Fixed delay before the first URL resolution attempt",
    )
    url_resolve_base_delay_seconds: float = Field(
        default=2.0,
        description="Delay after the first failed URL resolution attempt",
    )
    url_resolve_multiplier: float = Field(
        default=2.0,
        description="Backoff multiplier between URL resolution attempts",
    )

    # Queries
    query_page_size: int = Field(
        default=50,
        description="Page size used when reading every change for a video",
    )
    feed_page_size: int = Field(
        default=5,
        description="Number of videos per feed page",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


# Convenience alias
settings = get_settings()
