from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "RepairHub Marketplace"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str
    db_connect_timeout_seconds: int = 10
    db_statement_timeout_ms: int = 5000

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── MARKETPLACE ───────────
    bid_validity_hours: int = 48
    request_expiry_days: int = 7
    default_service_radius_km: int = 10
    currency: str = "PKR"
    review_edit_window_days: int = 30
    notification_sink: str = "database"  # database | log


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
