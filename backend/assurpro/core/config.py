from pydantic_settings import BaseSettings
from pydantic import AnyUrl
from functools import lru_cache


class Settings(BaseSettings):
    # core
    ENV: str = "dev"
    API_PREFIX: str = "/api"
    APP_URL: str = "http://localhost:3000"

    # database & redis
    DATABASE_URL: AnyUrl
    # Keep this as a plain string so redis:// URLs are always accepted
    REDIS_URL: str = "redis://localhost:6379/0"

    # identity provider (Supabase Auth)
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str
    IDENTITY_TIMEOUT_SECONDS: int = 15

    # company-profile provisioning
    PROFILE_PROVISION_ATTEMPTS: int = 3
    PROFILE_PROVISION_BACKOFF_SECONDS: float = 0.3
    REGISTRATION_BACKOFF_SECONDS: float = 0.5

    # contracts
    RENEWAL_ALERT_DAYS: int = 7

    # auth / security
    FRONTEND_ORIGIN: str | None = None
    # Explicit debug-only switch for wide-open CORS in non-prod envs
    CORS_ALLOW_ALL_ORIGINS: bool = False

    # smtp
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_SECURE: bool = False  # implicit TLS (port 465); otherwise STARTTLS
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_NAME: str = "OptimumAssurPro"
    SMTP_TIMEOUT_SECONDS: int = 60

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
