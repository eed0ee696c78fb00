from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_env: str = "dev"
    log_level: str = "INFO"

    # Infra
    database_url: str = "postgresql://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"
    smtp_base_url: str = "http://smtp-mock:8025"
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10

    # Security
    bcrypt_rounds: int = 12
    jwt_secret: str = "dev-change-me"
    jwt_algorithm: str = "HS256"
    jwt_ttl_seconds: int = 30 * 24 * 3600

    # Verification policies
    code_ttl_seconds: int = 600
    resend_cooldown_seconds: int = 60
    code_max_attempts: int = 3
    pending_signup_ttl_seconds: int = 24 * 3600
    reset_grant_ttl_seconds: int = 600

    # Admin login approval
    approval_ttl_seconds: int = 300

    # Staging store maintenance
    sweep_interval_seconds: int = 600

    # Worker
    outbox_poll_interval_ms: int = 500

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
