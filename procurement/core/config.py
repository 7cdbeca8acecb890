from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Procurement Selection Bidding"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"
    actor_header: str = "X-Actor-Id"

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── LIVE VIEW ───────────
    live_debounce_seconds: float = 0.5
    live_resync_seconds: float = 5.0

    # ─────────── BIDDING ───────────
    closing_countdown_max_seconds: int = 60
    bid_rate_limit_capacity: int = 10
    bid_rate_limit_per_minute: int = 10


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
