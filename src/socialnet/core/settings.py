"""Application settings and configuration.

Settings are loaded from environment variables (or a ``.env`` file) with
defaults suitable for a single-process deployment on an embedded SQLite store.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_MIGRATIONS_DIR = str(Path(__file__).resolve().parents[1] / "db" / "migrations" / "sqlite")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every option can be overridden through the upper-case environment variable
    named in its alias, or through a ``.env`` file in the working directory.
    """

    # Application metadata
    app_name: str = Field(default="Social Network", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./social-network.db",
        alias="DATABASE_URL",
    )
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    run_migrations_on_startup: bool = Field(default=True, alias="RUN_MIGRATIONS_ON_STARTUP")
    migrations_dir: str = Field(default=_DEFAULT_MIGRATIONS_DIR, alias="MIGRATIONS_DIR")

    # Session cookie
    session_cookie_name: str = Field(default="AccessToken", alias="SESSION_COOKIE_NAME")
    session_ttl_seconds: int = Field(default=60 * 60 * 24, alias="SESSION_TTL_SECONDS")
    session_cookie_secure: bool = Field(default=True, alias="SESSION_COOKIE_SECURE")

    # Listing limits
    notification_limit: int = Field(default=50, alias="NOTIFICATION_LIMIT")
    message_page_size: int = Field(default=50, alias="MESSAGE_PAGE_SIZE")

    # Real-time hub
    ws_write_timeout_seconds: float = Field(default=5.0, alias="WS_WRITE_TIMEOUT_SECONDS")

    # CORS configuration for the web frontend
    cors_origins: list[str] = Field(
        default=["http://localhost:5173"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["Content-Type", "Authorization"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
