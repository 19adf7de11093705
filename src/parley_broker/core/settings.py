"""Application settings and configuration.

This module defines all configuration options for the Parley broker.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Parley Broker", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./parley.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Ephemeral signals: hard TTL enforced by the store, idle hint for clients
    typing_ttl_seconds: float = Field(default=3.0, alias="TYPING_TTL_SECONDS")
    typing_idle_seconds: float = Field(default=2.0, alias="TYPING_IDLE_SECONDS")

    # Presence heartbeat timeout before a principal is forced offline
    presence_timeout_seconds: float = Field(default=60.0, alias="PRESENCE_TIMEOUT_SECONDS")

    # Background expiry of typing signals and stale presence
    expiry_sweep_enabled: bool = Field(default=True, alias="EXPIRY_SWEEP_ENABLED")
    expiry_sweep_interval_seconds: float = Field(
        default=0.5,
        alias="EXPIRY_SWEEP_INTERVAL_SECONDS",
    )

    # Per-subscription delta buffer; overflow forces a resync
    fanout_queue_size: int = Field(default=1000, alias="FANOUT_QUEUE_SIZE")

    # Attachment and voice note limits
    max_attachment_bytes: int = Field(default=10 * 1024 * 1024, alias="MAX_ATTACHMENT_BYTES")
    max_attachments: int = Field(default=10, alias="MAX_ATTACHMENTS")
    max_body_chars: int = Field(default=4000, alias="MAX_BODY_CHARS")
    allowed_attachment_types: list[str] = Field(
        default=["image/*", "application/pdf", "application/msword", "*document*", "text/*"],
        alias="ALLOWED_ATTACHMENT_TYPES",
    )
    voice_note_types: list[str] = Field(default=["audio/*"], alias="VOICE_NOTE_TYPES")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url


settings = Settings()  # type: ignore[call-arg]
