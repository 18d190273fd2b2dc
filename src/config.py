from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_GCM_ENDPOINT = "https://fcm.googleapis.com/fcm/send"


def _get_first_set(*env_names: str) -> str:
    for env_name in env_names:
        value = os.getenv(env_name, "").strip()
        if value:
            return value
    return ""


def _normalize_database_url(raw_url: str) -> str:
    if not raw_url:
        return raw_url
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg2://", 1)
    if raw_url.startswith("postgresql://") and "+" not in raw_url.split("://", 1)[0]:
        return raw_url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return raw_url


def _build_database_url() -> str:
    explicit = _get_first_set("PUSH_DATABASE_URL", "DATABASE_URL")
    if explicit:
        return _normalize_database_url(explicit)

    # Local dev fallback when DATABASE_URL is not set.
    sqlite_file = Path(os.getenv("SQLITE_DB_PATH", "./push.db")).as_posix()
    if sqlite_file.startswith("/"):
        return f"sqlite:///{sqlite_file}"
    return f"sqlite:///./{sqlite_file.lstrip('./')}"


def _split_codes(raw: str) -> tuple[str, ...]:
    codes = tuple(code.strip() for code in raw.split(",") if code.strip())
    return codes or ("NotRegistered",)


@dataclass(frozen=True)
class Settings:
    app_name: str = os.getenv("APP_NAME", "gcm_push_dispatch")
    app_debug: bool = os.getenv("APP_DEBUG", "false").lower() == "true"
    app_host: str = os.getenv("APP_HOST", "0.0.0.0")
    app_port: int = int(os.getenv("APP_PORT", "8004"))

    database_url: str = _build_database_url()

    gcm_server_key: str = _get_first_set("GCM_SERVER_KEY", "FCM_SERVER_KEY")
    gcm_endpoint: str = os.getenv("GCM_ENDPOINT", DEFAULT_GCM_ENDPOINT)
    gcm_timeout_seconds: float = float(os.getenv("GCM_TIMEOUT_SECONDS", "10"))
    gcm_max_retries: int = int(os.getenv("GCM_MAX_RETRIES", "2"))
    gcm_backoff_seconds: float = float(os.getenv("GCM_BACKOFF_SECONDS", "0.5"))
    gcm_gone_error_codes: tuple[str, ...] = _split_codes(os.getenv("GCM_GONE_ERROR_CODES", "NotRegistered"))


settings = Settings()


def get_settings() -> Settings:
    return settings
