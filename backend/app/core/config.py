"""Application configuration loaded from environment variables.

Settings for database, API, authentication, the credit ledger and the
premium/free AI providers. Uses pydantic-settings for validation and
.env file support.
"""

import uuid

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "agora_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "agora"
    database_user: str = "agora_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # asyncpg command timeout; a hung ledger call surfaces as a failure
    database_command_timeout_seconds: float = 10.0

    # CORS (Security)
    # Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Authentication
    # Local-first mode: DEFAULT_USER_ID provides user context without JWT
    # Hosted mode: auth_enabled=True, JWT cookie required on every request
    default_user_id: uuid.UUID | None = None
    auth_enabled: bool = False
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "agora"
    auth_audience: str = "agora"
    auth_cookie_name: str = "agora.session-token"

    # Credits
    starter_credits: int = 10
    credit_history_default_limit: int = 50
    credit_history_max_limit: int = 100
    low_credit_threshold: int = 10

    # Premium provider (vision-capable, billed in credits)
    openrouter_api_key: SecretStr = SecretStr("")
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "google/gemini-3-pro-image-preview"

    # Free provider (text-only fallback, no credits)
    free_ai_base_url: str = "https://ai.hackclub.com"
    free_ai_model: str = "google/gemini-2.5-flash"

    # Sent to OpenRouter as HTTP-Referer / X-Title
    site_url: str = "http://localhost:3000"
    site_title: str = "Agora AI Tutor"

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_ai: str = "10/minute"
    rate_limit_enabled: bool = True

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants and production security requirements.

        Checks:
        - Starter credits must be non-negative (all environments)
        - History limits must be positive and default <= max (all environments)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars when auth is enabled in production
        """
        if self.starter_credits < 0:
            msg = f"STARTER_CREDITS cannot be negative. Got: {self.starter_credits}"
            raise ValueError(msg)

        if self.credit_history_max_limit < 1 or self.credit_history_default_limit < 1:
            msg = "Credit history limits must be at least 1."
            raise ValueError(msg)
        if self.credit_history_default_limit > self.credit_history_max_limit:
            msg = (
                "CREDIT_HISTORY_DEFAULT_LIMIT must not exceed "
                f"CREDIT_HISTORY_MAX_LIMIT ({self.credit_history_max_limit}). "
                f"Got: {self.credit_history_default_limit}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if self.auth_enabled:
                secret_value = self.auth_secret.get_secret_value()
                if not secret_value:
                    msg = (
                        "AUTH_SECRET must be set when AUTH_ENABLED=true in production. "
                        'Generate with: python -c "import secrets; '
                        'print(secrets.token_hex(32))"'
                    )
                    raise ValueError(msg)
                if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                    msg = (
                        f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                        "characters for adequate security."
                    )
                    raise ValueError(msg)

        return self


settings = Settings()
