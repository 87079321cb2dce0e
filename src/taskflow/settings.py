from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - RECORD_STORE_BACKEND: 'memory' (default), 'sqlite' or 'http'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/taskflow.db'
    - RECORD_STORE_URL: base URL of the remote record service (http backend)
    - RECORD_STORE_PROJECT_ID / RECORD_STORE_PUBLIC_KEY: remote credentials
    - RECORD_STORE_TIMEOUT: request timeout in seconds (default 10)
    - TASK_TABLE: record store table holding tasks (default 'task1')
    - TASK_PAGE_SIZE: number of records fetched on load (default 100)
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - ENABLE_AUTH: 'true' to require a bearer token on task endpoints (default: false)
    - AUTH_USERNAME / AUTH_PASSWORD: the single account accepted by login
    - PREFERENCES_PATH: JSON file for user preferences. Default './data/preferences.json'
    - LOG_LEVEL: console log level (default INFO)
    - LOG_DIR: when set, full logs are also written to LOG_DIR/taskflow.log
    """

    record_store_backend: str
    sqlite_db_path: str
    record_store_url: Optional[str]
    record_store_project_id: Optional[str]
    record_store_public_key: Optional[str]
    record_store_timeout: float
    task_table: str
    task_page_size: int
    cors_allow_origins: List[str]
    enable_auth: bool
    auth_username: Optional[str]
    auth_password: Optional[str]
    preferences_path: str
    log_level: str
    log_dir: Optional[str]


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_float(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        # Star will be handled in main via allow_origins=["*"]
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("RECORD_STORE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite", "http"}:
        # Fallback to memory if unsupported
        backend = "memory"

    enable_auth = _parse_bool(_get_env("ENABLE_AUTH", "false"), False)
    log_dir = os.getenv("LOG_DIR") or None

    return Settings(
        record_store_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/taskflow.db").strip(),
        record_store_url=os.getenv("RECORD_STORE_URL") or None,
        record_store_project_id=os.getenv("RECORD_STORE_PROJECT_ID") or None,
        record_store_public_key=os.getenv("RECORD_STORE_PUBLIC_KEY") or None,
        record_store_timeout=_parse_float(_get_env("RECORD_STORE_TIMEOUT", "10"), 10.0),
        task_table=_get_env("TASK_TABLE", "task1").strip(),
        task_page_size=_parse_int(_get_env("TASK_PAGE_SIZE", "100"), 100),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        enable_auth=enable_auth,
        auth_username=os.getenv("AUTH_USERNAME") if enable_auth else None,
        auth_password=os.getenv("AUTH_PASSWORD") if enable_auth else None,
        preferences_path=_get_env("PREFERENCES_PATH", "./data/preferences.json").strip(),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        log_dir=log_dir,
    )
