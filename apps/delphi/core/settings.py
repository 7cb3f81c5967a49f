from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "delphi.db"


class Settings(BaseSettings):
    """Unified application settings for Delphi.

    Loads from env with support for repo ".env" files. Avoids manual load_dotenv().
    """

    _app_env = (os.getenv("APP_ENV") or "").strip().lower()
    _env_files = (
        []
        if _app_env in {"test", "ci"}
        else [
            str((Path(__file__).resolve().parents[1] / ".env")),  # apps/delphi/.env
            str((Path(__file__).resolve().parents[3] / ".env")),  # repo root .env
        ]
    )

    model_config = SettingsConfigDict(
        env_file=_env_files,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # --- App / Core ---
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_name: str = Field(default="delphi", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    # Logging
    log_level: str | None = Field(default=None, alias="DELPHI_LOG_LEVEL")
    log_level_fallback: str | None = Field(default=None, alias="LOG_LEVEL")

    secret_key: SecretStr = Field(default=SecretStr("dev-secret-change-me"), alias="SECRET_KEY")
    cors_allow_origins: list[str] = Field(default=["*"], alias="CORS_ALLOW_ORIGINS")

    # Database
    database_url: str = Field(default=f"sqlite:///{DEFAULT_DB_PATH}", alias="DATABASE_URL")
    db_auto_create: bool = Field(
        default=True,
        alias="DB_AUTO_CREATE",
        description="Create missing tables at startup. Disable when Alembic owns the schema.",
    )

    # Sessions (shared with the HTTP login flow)
    session_cookie_name: str = Field(default="delphi.sid", alias="SESSION_COOKIE_NAME")
    session_max_age_seconds: int = Field(
        default=60 * 60 * 24 * 30, alias="SESSION_MAX_AGE_SECONDS", ge=60
    )

    # Realtime
    ws_path: str = Field(default="/ws", alias="WS_PATH")
    ws_heartbeat_interval_seconds: float = Field(
        default=30.0, alias="WS_HEARTBEAT_INTERVAL_SECONDS", gt=0
    )
    ws_close_superseded: bool = Field(default=True, alias="WS_CLOSE_SUPERSEDED")
    invite_code_bytes: int = Field(default=6, alias="INVITE_CODE_BYTES", ge=4, le=32)
    client_reconnect_delay_seconds: float = Field(
        default=5.0, alias="CLIENT_RECONNECT_DELAY_SECONDS", gt=0
    )

    @property
    def effective_log_level(self) -> str | None:
        return self.log_level or self.log_level_fallback


settings = Settings()
