"""Application configuration loaded from environment variables.

Settings for the database, quota limits, webhook verification, the AI
gateway, Stripe, and outbound email. Uses pydantic-settings for validation
and .env file support. Only the API dependency layer reads the module-level
``settings`` object; services receive the values they need through their
constructors.
"""

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "license_gate_dev_password"  # nosec B105


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
    database_name: str = "license_gate"
    database_user: str = "license_gate_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # CORS (Security)
    # The browser extension and the activation site are the only callers.
    # Never set to ["*"]: wildcard origins are rejected by the validator.
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Usage quotas
    free_tier_daily_limit: int = 10
    pro_tier_rate_limit_per_minute: int = 30

    # Webhook verification (seconds)
    webhook_max_age_seconds: int = 120
    webhook_max_future_seconds: int = 30

    # Stripe
    stripe_secret_key: SecretStr = SecretStr("")
    stripe_webhook_secret: SecretStr = SecretStr("")
    stripe_price_pro: str = ""
    stripe_timeout_seconds: float = 10.0
    pro_plan_price: float = 9.99

    # AI gateway (OpenAI-compatible endpoint)
    gateway_account_id: str = ""
    gateway_name: str = "license-gate-gateway"
    gateway_token: SecretStr = SecretStr("")
    openai_api_key: SecretStr = SecretStr("")
    gateway_timeout_seconds: float = 30.0

    # Email
    email_from: str = "noreply@example.com"
    resend_api_key: SecretStr = SecretStr("")

    # Public site that hosts the checkout success/cancel pages
    extension_url: str = "http://localhost:3000"

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "3/hour")
    rate_limit_validate_key: str = "10/minute"
    rate_limit_create_free_key: str = "3/hour"
    rate_limit_checkout: str = "5/hour"
    rate_limit_verify_payment: str = "20/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def gateway_base_url(self) -> str:
        """OpenAI-compatible base URL of the AI gateway."""
        return (
            "https://gateway.ai.cloudflare.com/v1/"
            f"{self.gateway_account_id}/{self.gateway_name}/compat"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants and production security requirements.

        Checks:
        - Quota limits must be positive (all environments)
        - Webhook tolerances must be positive (all environments)
        - CORS must not use wildcard origin (all environments)
        - Database password must not be the default in production
        - Stripe secrets must be set in production
        """
        if self.free_tier_daily_limit <= 0:
            msg = (
                "FREE_TIER_DAILY_LIMIT must be positive. "
                f"Got: {self.free_tier_daily_limit}"
            )
            raise ValueError(msg)
        if self.pro_tier_rate_limit_per_minute <= 0:
            msg = (
                "PRO_TIER_RATE_LIMIT_PER_MINUTE must be positive. "
                f"Got: {self.pro_tier_rate_limit_per_minute}"
            )
            raise ValueError(msg)

        if self.webhook_max_age_seconds <= 0 or self.webhook_max_future_seconds <= 0:
            msg = (
                "WEBHOOK_MAX_AGE_SECONDS and WEBHOOK_MAX_FUTURE_SECONDS "
                "must be positive."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "List the extension and site origins explicitly."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if not self.stripe_secret_key.get_secret_value():
                msg = "STRIPE_SECRET_KEY must be set in production."
                raise ValueError(msg)
            if not self.stripe_webhook_secret.get_secret_value():
                msg = "STRIPE_WEBHOOK_SECRET must be set in production."
                raise ValueError(msg)

        return self


settings = Settings()
