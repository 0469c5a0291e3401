"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./wrrk.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (invite links)
    FRONTEND_URL: str = "http://localhost:3000"

    # Dev-only
    DEV_SECRET: str = "change-me"

    # Redis (rotation cursor + realtime backplane). Empty or memory:// disables it.
    REDIS_URL: str = ""

    # Inbound email webhook (shared secret sent by the mail provider)
    INBOUND_EMAIL_SECRET: str = ""

    # AI triage
    AI_PROVIDER: str = "openai"  # openai | gemini
    AI_API_KEY: str = ""
    AI_MODEL: str = ""
    AI_TRIAGE_CONFIDENCE_THRESHOLD: float = 0.7  # resolved only when strictly above
    AI_TRIAGE_TIMEOUT_SECONDS: float = 15.0

    # Visibility policy for null-assignee tickets (Owners always see them)
    UNASSIGNED_VISIBLE_TO_MANAGERS: bool = False

    # Outbound email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "support@wrrk.ai"

    # Invitations
    INVITE_EXPIRY_DAYS: int = 7

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60  # General API
    RATE_LIMIT_WIDGET: int = 20  # Public chat widget per client IP

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"

    @property
    def ai_configured(self) -> bool:
        return bool(self.AI_API_KEY)


settings = Settings()
