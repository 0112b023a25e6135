from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Procurement Workflow Backend"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str
    db_statement_timeout_ms: int = 15000  # postgres only
    auto_create_schema: bool = True

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours
    password_reset_minutes: int = 60
    min_password_length: int = 8

    # ─────────── UPLOADS ───────────
    upload_dir: Path = Path("uploads")
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MiB per file


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
