"""
FanForge Review Service Configuration

Loads and validates every environment variable the submission review backend
needs, using Pydantic Settings:
- Application settings (name, environment, debug mode, logging)
- MongoDB connection and pooling
- Redis caching (role grants, user lookups)
- Auth0 token verification with a local JWT fallback
- Review workflow bounds (write timeout, bulk limits)
- Story Protocol registration gateway (network, credentials, retry policy)

Values come from the process environment or a local .env file.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_COLLECTION_CONTRACT = "0x011A0239090d42f5B1B27B4aD2bd70dd3Cf4cB55"


class Settings(BaseSettings):
    """
    Configuration for the FanForge submission review backend.

    Settings are grouped by concern:
    - Application: name, environment, debug mode, logging
    - MongoDB: connection URI and pool sizes
    - Redis: cache URL and TTLs
    - Auth0: token verification, falling back to local HS256 JWTs
    - Review: transactional write bound and bulk review size
    - Story Protocol: registry gateway endpoint and registration defaults

    Example usage:
        ```python
        from app.config import get_settings

        settings = get_settings()
        print(settings.story_explorer_base_url)
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="FanForge-Review",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=True, description="Enable debug mode and verbose logging")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=False,
        description="Emit structured JSON logs (forced on outside development)",
    )

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Secret key for local JWT signing. Must be a secure random string.",
        min_length=32,
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8000, description="Port number for the API server", ge=1, le=65535)

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017)",
    )

    mongodb_db_name: str = Field(default="fanforge", description="MongoDB database name")

    mongodb_min_pool_size: int = Field(
        default=5, description="Minimum number of connections in the MongoDB pool", ge=1
    )

    mongodb_max_pool_size: int = Field(
        default=50, description="Maximum number of connections in the MongoDB pool", ge=5
    )

    # =========================================================================
    # Redis Configuration
    # =========================================================================

    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL (e.g., redis://localhost:6379)",
    )

    redis_cache_ttl_seconds: int = Field(
        default=300, description="Default TTL for Redis cache entries in seconds", ge=1
    )

    role_cache_ttl_seconds: int = Field(
        default=120,
        description="TTL for cached reviewer role grants in seconds",
        ge=1,
        le=3600,
    )

    # =========================================================================
    # Auth0 Configuration
    # =========================================================================

    auth0_domain: str | None = Field(
        default=None, description="Auth0 tenant domain (e.g., your-tenant.auth0.com)"
    )

    auth0_api_audience: str | None = Field(
        default=None, description="Auth0 API audience identifier for token validation"
    )

    auth0_client_id: str | None = Field(default=None, description="Auth0 application client ID")

    auth0_client_secret: str | None = Field(
        default=None, description="Auth0 application client secret"
    )

    jwt_algorithm: str = Field(
        default="HS256", description="JWT signing algorithm (HS256 for local, RS256 for Auth0)"
    )

    jwt_expiration_hours: int = Field(
        default=24, description="JWT token expiration time in hours", ge=1, le=168
    )

    # =========================================================================
    # Review Workflow Settings
    # =========================================================================

    review_write_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound on the approve/reject status write",
        gt=0,
        le=60,
    )

    bulk_review_max_items: int = Field(
        default=50, description="Maximum submissions accepted by one bulk review", ge=1, le=500
    )

    # =========================================================================
    # Story Protocol Registration
    # =========================================================================

    story_network: str = Field(
        default="aeneid", description="Story Protocol network (aeneid testnet or mainnet)"
    )

    story_registry_url: str = Field(
        default="http://localhost:8100",
        description="Base URL of the derivative registration gateway",
    )

    story_registry_api_key: str | None = Field(
        default=None, description="Bearer token presented to the registration gateway"
    )

    story_registry_timeout_seconds: float = Field(
        default=30.0,
        description="Per-call timeout for registration requests",
        gt=0,
        le=300,
    )

    story_registry_connect_retries: int = Field(
        default=2,
        description="Retries for connection failures only (request never sent)",
        ge=0,
        le=5,
    )

    story_default_collection_contract: str = Field(
        default=DEFAULT_COLLECTION_CONTRACT,
        description="SPG NFT collection used when a campaign has no dedicated contract",
    )

    story_campaign_collection_contracts: dict[str, str] = Field(
        default_factory=dict,
        description="Per-campaign SPG collection contracts keyed by campaign id",
    )

    story_license_terms_id: str = Field(
        default="386", description="License terms id attached for each parent IP asset"
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        valid_algorithms = {"HS256", "HS384", "HS512", "RS256", "RS384", "RS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(valid_algorithms)}"
            )
        return v.upper()

    @field_validator("story_network")
    @classmethod
    def validate_story_network(cls, v: str) -> str:
        """Only the public testnet and mainnet have explorers we can link to."""
        normalized = v.lower()
        if normalized not in {"aeneid", "mainnet"}:
            raise ValueError(f"Invalid story_network '{v}'. Must be 'aeneid' or 'mainnet'")
        return normalized

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("story_registry_url")
    @classmethod
    def strip_registry_url(cls, v: str) -> str:
        return v.rstrip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_auth0_enabled(self) -> bool:
        """
        Check if Auth0 authentication is fully configured.

        When False, tokens are verified as local HS256 JWTs signed with
        secret_key.
        """
        return all([self.auth0_domain, self.auth0_client_id, self.auth0_client_secret])

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def use_json_logs(self) -> bool:
        return self.json_logs or not self.is_development

    @property
    def story_explorer_base_url(self) -> str:
        if self.story_network == "mainnet":
            return "https://explorer.story.foundation"
        return "https://aeneid.explorer.story.foundation"

    def collection_contract_for(self, campaign_id: str) -> str:
        """Return the SPG collection for a campaign, or the platform default."""
        return self.story_campaign_collection_contracts.get(
            campaign_id, self.story_default_collection_contract
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    Cached with lru_cache so the environment and .env file are read once per
    process. Tests construct Settings directly or override this dependency.

    Returns:
        Settings: The global configuration instance.
    """
    return Settings()
