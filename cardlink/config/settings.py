"""
Profile Engagement Core
Centralized Configuration Management

Configuration is loaded with Pydantic settings from environment variables
(and an optional .env file), validated and typed per subsystem.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Document store (PostgreSQL) configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="cardlink", description="Database name")
    user: str = Field(default="cardlink", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    pool_size: int = Field(default=20, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Max overflow connections")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Full async URL (overrides host/port)")
    create_schema: bool = Field(default=False, alias="DATABASE_CREATE_SCHEMA", description="Create tables on startup")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg from parts"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class SecuritySettings(BaseSettings):
    """Session tokens, CORS and rate limiting"""

    model_config = SettingsConfigDict(env_prefix="")

    jwt_secret_key: SecretStr = Field(default="jwt-secret-change-me", alias="JWT_SECRET_KEY", description="Session token HMAC key")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM", description="Session token algorithm")
    session_token_ttl_days: int = Field(default=7, alias="SESSION_TOKEN_TTL_DAYS", description="Absolute token lifetime in days")
    session_role: str = Field(default="user", alias="SESSION_ROLE", description="Role embedded in session tokens")

    # Rate limiting
    rate_limit_requests: int = Field(default=100, alias="RATE_LIMIT_REQUESTS", description="Rate limit requests")
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS", description="Rate limit window")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )


class IdentitySettings(BaseSettings):
    """External identity proof verification"""

    model_config = SettingsConfigDict(env_prefix="IDENTITY_")

    proof_key: SecretStr = Field(default="identity-proof-key-change-me", description="Key (or PEM public key) for identity proofs")
    proof_algorithms: List[str] = Field(default=["HS256"], description="Accepted proof algorithms")
    audience: Optional[str] = Field(default=None, description="Expected proof audience")
    issuer: Optional[str] = Field(default=None, description="Expected proof issuer")


class PublicUrlSettings(BaseSettings):
    """Public card URL configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    public_url: Optional[str] = Field(default=None, alias="PUBLIC_URL", description="Base URL for public cards")
    default_public_url: str = Field(
        default="http://localhost:5173",
        alias="DEFAULT_PUBLIC_URL",
        description="Fallback when neither PUBLIC_URL nor the request origin is known",
    )
    card_path: str = Field(default="card", description="Path segment in front of the slug")


class AnalyticsSettings(BaseSettings):
    """Analytics report windows and limits"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    recent_window_days: int = Field(default=30, description="Window for recent registrations")
    monthly_buckets: int = Field(default=6, description="Trailing calendar months in monthly stats")
    top_companies_limit: int = Field(default=5)
    recent_registrations_limit: int = Field(default=10)
    top_viewed_limit: int = Field(default=10)
    recent_views_limit: int = Field(default=20)
    account_event_scan_limit: int = Field(default=1000, description="Max events read per type for an account report")


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="cardlink", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    public_urls: PublicUrlSettings = Field(default_factory=PublicUrlSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
