"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RESERVED_SLUGS = [
    "admin",
    "api",
    "auth",
    "login",
    "logout",
    "register",
    "signup",
    "signin",
    "dashboard",
    "settings",
    "billing",
    "docs",
    "help",
    "support",
    "public",
    "static",
    "assets",
    "app",
    "www",
    "mail",
    "cdn",
    "images",
    "files",
]


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        PROVISIONING_DB_HOST: Database host (default: localhost)
        PROVISIONING_DB_PORT: Database port (default: 5432)
        PROVISIONING_DB_DATABASE: Database name (default: provisioning)
        PROVISIONING_DB_USERNAME: Database user (default: provisioning)
        PROVISIONING_DB_PASSWORD: Database password (required in production)
        PROVISIONING_DB_POOL_MAX_CONNECTIONS: Hard cap on pooled connections (default: 10)
        PROVISIONING_DB_POOL_TIMEOUT_SECONDS: Wait for a free connection (default: 30)
        PROVISIONING_DB_POOL_RECYCLE_SECONDS: Replace connections older than this (default: 1800)
        PROVISIONING_DB_STATEMENT_TIMEOUT_MS: Server-side statement timeout, 0 disables (default: 15000)
        PROVISIONING_DB_APPLICATION_NAME: Reported in pg_stat_activity
        PROVISIONING_DB_ECHO_SQL: Log every statement (default: false)
    """

    model_config = SettingsConfigDict(
        env_prefix="PROVISIONING_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="provisioning", description="Database name")
    username: str = Field(default="provisioning", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool (no overflow)",
        ge=1,
        le=100,
    )
    pool_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds to wait for a pooled connection",
        gt=0,
        le=300,
    )
    pool_recycle_seconds: int = Field(
        default=1800,
        description="Recycle connections older than this many seconds (-1 disables)",
        ge=-1,
    )
    statement_timeout_ms: int = Field(
        default=15000,
        description="Server-side statement_timeout for every connection (0 disables)",
        ge=0,
    )
    application_name: str = Field(
        default="tenant-provisioning",
        description="application_name reported to PostgreSQL",
        max_length=63,
    )
    echo_sql: bool = Field(default=False, description="Log every SQL statement")

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class IdentityProviderSettings(BaseSettings):
    """Settings for the external identity provider admin API.

    Environment variables:
        PROVISIONING_IDP_BASE_URL: Admin API base URL (e.g. https://auth.example.com/auth/v1)
        PROVISIONING_IDP_SERVICE_KEY: Service credential sent as bearer token
        PROVISIONING_IDP_TIMEOUT_SECONDS: Per-request timeout (default: 10)
        PROVISIONING_IDP_REQUIRE_EMAIL_VERIFICATION: Leave new owner emails unconfirmed (default: true)
        PROVISIONING_IDP_PAGE_SIZE: Users per page when looking up by email (default: 100)
    """

    model_config = SettingsConfigDict(
        env_prefix="PROVISIONING_IDP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost:9999",
        description="Identity provider admin API base URL",
    )
    service_key: SecretStr = Field(
        default=SecretStr(""),
        description="Service credential for the admin API",
    )
    timeout_seconds: float = Field(
        default=10.0,
        description="Per-request timeout in seconds",
        gt=0,
        le=120,
    )
    require_email_verification: bool = Field(
        default=True,
        description="Create owner identities with unconfirmed email",
    )
    page_size: int = Field(
        default=100,
        description="Users fetched per page when looking an email up",
        ge=1,
        le=1000,
    )


class ProvisioningSettings(BaseSettings):
    """Business rules for tenant provisioning and credential changes.

    Environment variables use the PROVISIONING_ prefix, e.g.
    PROVISIONING_MAX_SLUG_SUGGESTIONS=10.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROVISIONING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    reserved_slugs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RESERVED_SLUGS),
        description="Slugs that can never be assigned to a tenant",
    )
    slug_min_length: int = Field(default=3, ge=1, le=50)
    slug_max_length: int = Field(default=50, ge=1, le=255)
    max_slug_suggestions: int = Field(
        default=10,
        description="How many -N suffixes to try before giving up on a suggestion",
        ge=0,
        le=100,
    )
    initial_password_length: int = Field(default=16, ge=12, le=128)
    min_password_length: int = Field(default=8, ge=6, le=128)
    stale_request_after_seconds: int = Field(
        default=900,
        description="Age after which a non-terminal provisioning request is reconciled",
        ge=60,
    )
    default_timezone: str = Field(default="UTC")
    default_currency: str = Field(default="USD", min_length=3, max_length=3)

    @model_validator(mode="after")
    def validate_slug_lengths(self) -> "ProvisioningSettings":
        """Validate slug max >= min."""
        if self.slug_max_length < self.slug_min_length:
            raise ValueError(
                f"slug_max_length ({self.slug_max_length}) must be >= "
                f"slug_min_length ({self.slug_min_length})"
            )
        return self


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(
        default="Tenant Provisioning API", description="Application name"
    )
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def identity_provider(self) -> IdentityProviderSettings:
        """Get identity provider settings."""
        return get_identity_provider_settings()

    @property
    def provisioning(self) -> ProvisioningSettings:
        """Get provisioning settings."""
        return get_provisioning_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_identity_provider_settings() -> IdentityProviderSettings:
    """Get cached identity provider settings."""
    return IdentityProviderSettings()


@lru_cache
def get_provisioning_settings() -> ProvisioningSettings:
    """Get cached provisioning settings."""
    return ProvisioningSettings()
