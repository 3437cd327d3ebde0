"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "gradii_user"
    postgres_password: str = "password"
    postgres_db: str = "gradii_db"
    database_url: Optional[str] = None  # Overrides the postgres_* fields when set

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "gradii_docs"

    # OpenAI
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440

    # Public URL of this deployment (SSO metadata, redirects, emails)
    app_base_url: str = "http://localhost:8000"

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "Gradii <no-reply@gradii.ai>"

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    rate_limit_enabled: bool = True
    # Peers allowed to set X-Forwarded-For, e.g. ["10.0.0.2"]
    trusted_proxies: List[str] = []

    # Azure Blob Storage
    azure_storage_connection_string: str = ""
    azure_storage_container_name: str = "interview-recordings"

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: str = "detailed"
    log_file_dir: str = "logs"
    enable_file_logging: bool = False

    # App
    debug: bool = False

    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL"""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
