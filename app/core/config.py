"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Connection strings have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma separated (e.g. http://localhost:5173,https://connectpro.app). Empty = default list in code.
    cors_origins: str = ""
    # Header set by the auth gateway with the authenticated user id. Missing = anonymous visitor.
    client_id_header: str = "X-Client-Id"
    # Shared key for /admin routes (X-Admin-Key). Unset = admin routes disabled.
    admin_api_key: str | None = None

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # ===========================================
    # REDIS
    # ===========================================
    redis_url: str  # Required, no default

    # ===========================================
    # ACCESS POLICY
    # ===========================================
    daily_free_views_limit: int = 3  # distinct providers per UTC day without a subscription
    access_cache_ttl_seconds: int = 300  # 5 minutes

    # ===========================================
    # PRICING (Kwacha)
    # ===========================================
    subscription_plan: str = "monthly"
    subscription_price: int = 100
    subscription_period_days: int = 30
    contact_unlock_price: int = 20
    referral_access_price: int = 30

    # ===========================================
    # PAYMENT PROCESSOR (LencoPay backend)
    # ===========================================
    payment_api_url: str = "http://localhost:3001/api/payments"
    payment_poll_interval_seconds: float = 10.0
    payment_poll_max_attempts: int = 30
    http_client_timeout: float = 10.0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("daily_free_views_limit", "payment_poll_max_attempts")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("payment_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
