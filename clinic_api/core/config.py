from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "Clinic API"
    database_url: str = (
        "postgresql+psycopg2://clinic:clinic@db:5432/clinic"  # pragma: allowlist secret
    )
    cors_origins: list[str] = ["http://localhost:5173"]
    rate_limit_requests: int = 120
    rate_limit_window_seconds: int = 60
    log_level: str = "INFO"
    jwt_secret_key: str = "change-me"  # pragma: allowlist secret
    jwt_algorithm: str = "HS256"
    access_token_expire_days: int = 7
    admin_password: str = "change-me"  # pragma: allowlist secret

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()


settings = get_settings()
