"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="INVESTIE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Platform API
    api_base_url: str = "http://localhost:4000/api"
    http_timeout_seconds: float = 10.0

    # Local durable state (current account selection, cached snapshots)
    state_database_url: str = "sqlite:///./investie_state.db"

    # Background timers
    token_refresh_interval_seconds: float = 1800.0  # 30 minutes
    notification_poll_interval_seconds: float = 60.0
    notification_page_limit: int = 20

    # Service
    service_name: str = "investie-client"
    log_level: str = "INFO"


settings = Settings()
