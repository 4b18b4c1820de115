from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Legacy Tokens"
    debug: bool = False

    # Redis (token records, stage entries, host ledger and chain height)
    redis_url: str = "redis://localhost:6379"

    # Chain
    genesis_height: int = 0

    # Tokens
    metadata_ref_max_length: int = 256

    # Caller identity, set by the host gateway after signature verification
    principal_header: str = "X-Principal-Id"

    # Per-token mutation lock
    lock_ttl: int = 30  # seconds
    lock_wait_timeout: float = 5.0  # seconds
    lock_poll_interval: float = 0.05  # seconds

    # Pub/Sub token events
    publish_events: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
