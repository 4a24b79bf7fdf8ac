"""
Name: Application Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match the documented audit behavior

Collaborators:
  - api/main.py: reads settings for CORS, storage backend and lifespan
  - container.py: builds repositories/collaborators from settings
  - crosscutting/logger.py: log level and JSON toggle

Constraints:
  - No business logic — pure configuration
  - Audit derivation limits (payload cap, slow threshold) are constants of
    application/auto_audit.py, not tunables

Notes:
  - Singleton via lru_cache for performance
  - Tests disable .env loading from conftest
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_STORAGE_BACKENDS = {"postgres", "memory"}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        database_url: PostgreSQL connection string (required for postgres storage)
        app_env: Application environment (development/production/test)
        allowed_origins: Comma-separated CORS origins
        api_prefix: Namespace segment stripped from paths before entity inference
        audit_storage: postgres|memory (default: postgres)
        auto_audit_enabled: Run the best-effort fallback after each request
        audit_jwt_secret: HS256 secret; empty means tokens are decoded unverified
        audit_token_cookie: Cookie carrying the access token
        trust_user_id_header: Accept x-user-id from a trusted proxy
        audit_permissions_config: JSON {role: [action keys]} for scope grants
        audit_permission_namespace: Prefix of scope action keys
        db_pool_min_size / db_pool_max_size: Connection pool bounds
        db_statement_timeout_ms: Postgres statement_timeout per connection
        db_slow_query_seconds: Threshold for slow statement logging
        log_level / log_json: Logger configuration
    """

    database_url: str = ""

    # Environment
    app_env: str = "development"

    # CORS configuration
    allowed_origins: str = "http://localhost:3000"

    # HTTP
    api_prefix: str = "/api"

    # Audit
    audit_storage: str = "postgres"
    auto_audit_enabled: bool = True
    audit_permission_namespace: str = "audit-core"
    audit_permissions_config: str = ""

    # Identity
    audit_jwt_secret: str = ""
    audit_token_cookie: str = "hit_token"
    trust_user_id_header: bool = True

    # Database - Connection Pool
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_statement_timeout_ms: int = 30000  # 30 seconds
    db_slow_query_seconds: float = 0.25

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("audit_storage")
    @classmethod
    def audit_storage_valid(cls, v: str) -> str:
        storage = (v or "postgres").strip().lower()
        if storage not in _STORAGE_BACKENDS:
            raise ValueError("audit_storage must be postgres or memory")
        return storage

    @field_validator("db_pool_min_size", "db_pool_max_size")
    @classmethod
    def pool_size_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("pool sizes must be greater than 0")
        return v

    @field_validator("api_prefix")
    @classmethod
    def api_prefix_normalized(cls, v: str) -> str:
        prefix = "/" + (v or "").strip().strip("/")
        return "" if prefix == "/" else prefix

    @model_validator(mode="after")
    def validate_security_requirements(self):
        if not self.is_production():
            return self

        # R: sin proxy confiable, los tokens deben verificarse con firma.
        if not self.trust_user_id_header and not self.audit_jwt_secret.strip():
            raise ValueError(
                "AUDIT_JWT_SECRET is required in production when TRUST_USER_ID_HEADER is off"
            )
        return self

    def get_allowed_origins_list(self) -> list[str]:
        """Parse comma-separated origins into list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    def uses_postgres(self) -> bool:
        return self.audit_storage == "postgres"

    def validate_storage_requirements(self) -> None:
        """
        Cross-field validation: postgres storage needs a DSN.
        Called explicitly from the lifespan.
        """
        if self.uses_postgres() and not self.database_url.strip():
            raise ValueError("DATABASE_URL is required when AUDIT_STORAGE=postgres")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings singleton (cached after first call)
    """
    return Settings()
