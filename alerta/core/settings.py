from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from alerta.core.env import load_env


PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_USER_DATA_DIR = Path.home() / ".alerta_educativa" / "data"

_ENVIRONMENTS = {"development", "production", "staging", "test"}
_WEAK_SECRETS = {
    "change-me",
    "changeme",
    "secret",
    "session-secret",
    "my-secret-key",
    "change_me_session_secret",
}


@dataclass(frozen=True)
class Settings:
    environment: str  # development, production, staging, test
    data_dir: Path
    database_url_async: str
    sql_echo: bool
    db_pool_size: int
    db_max_overflow: int
    db_pool_timeout: int
    db_pool_recycle: int
    redis_url: str
    log_level: str
    log_json: bool
    log_file: str
    session_secret: str
    auth_cookie_name: str
    auth_cookie_secure: bool
    access_token_ttl_hours: int
    trust_proxy_headers: bool
    rate_limit_enabled: bool
    rate_limit_max_requests: int
    rate_limit_window_seconds: int
    rate_limit_sweep_seconds: int
    query_cache_persist_path: str
    query_cache_buster: str
    query_cache_max_age_seconds: int
    bootstrap_admin_email: str
    bootstrap_admin_password: str
    docs_enabled: bool

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _get_int(name: str, default: int, *, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except (TypeError, ValueError):
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


load_env()


def _default_data_dir() -> Path:
    env_dir = os.getenv("DATA_DIR")
    if env_dir and env_dir.strip():
        return Path(env_dir).expanduser()
    return DEFAULT_USER_DATA_DIR


def _normalize_database_url(url: str) -> str:
    """Map plain driver URLs onto the async drivers the engine expects."""

    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + url[len("sqlite:///"):]
    return url


def _validate_session_secret(value: str) -> None:
    if value.lower() in _WEAK_SECRETS:
        raise ValueError(
            f"SESSION_SECRET must be changed from default value '{value}'. "
            "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
        )
    if len(value) < 32:
        raise ValueError(
            f"SESSION_SECRET must be at least 32 characters (current: {len(value)})."
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    environment = _get_str("ENVIRONMENT", "development").lower()
    if environment not in _ENVIRONMENTS:
        environment = "development"

    data_dir = _default_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)

    raw_db_url = _get_str("DATABASE_URL")
    if not raw_db_url:
        if environment == "production":
            raise RuntimeError("DATABASE_URL must be set in production")
        raw_db_url = f"sqlite+aiosqlite:///{data_dir / 'alerta.db'}"
    database_url_async = _normalize_database_url(raw_db_url)

    session_secret = _get_str("SESSION_SECRET") or _get_str("SECRET_KEY")
    if not session_secret:
        if environment == "production":
            raise RuntimeError("SESSION_SECRET must be set in production")
        # Tokens issued with an ephemeral secret do not survive restarts.
        logging.warning("SESSION_SECRET is not set; using an ephemeral secret")
        session_secret = secrets.token_urlsafe(32)
    _validate_session_secret(session_secret)

    log_file = _get_str("LOG_FILE")
    if not log_file:
        log_dir = data_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = str(log_dir / "app.log")

    persist_path = _get_str("QUERY_CACHE_PERSIST_PATH")
    if not persist_path:
        persist_path = str(data_dir / "query-cache.json")

    return Settings(
        environment=environment,
        data_dir=data_dir,
        database_url_async=database_url_async,
        sql_echo=_get_bool("SQL_ECHO", default=False),
        db_pool_size=_get_int("DB_POOL_SIZE", 10, minimum=1),
        db_max_overflow=_get_int("DB_MAX_OVERFLOW", 5, minimum=0),
        db_pool_timeout=_get_int("DB_POOL_TIMEOUT", 30, minimum=1),
        db_pool_recycle=_get_int("DB_POOL_RECYCLE", 1800, minimum=60),
        redis_url=_get_str("REDIS_URL"),
        log_level=_get_str("LOG_LEVEL", "INFO").upper() or "INFO",
        log_json=_get_bool("LOG_JSON", default=False),
        log_file=log_file,
        session_secret=session_secret,
        auth_cookie_name=_get_str("AUTH_COOKIE_NAME", "alerta_access_token"),
        auth_cookie_secure=_get_bool("AUTH_COOKIE_SECURE", default=environment == "production"),
        access_token_ttl_hours=_get_int("ACCESS_TOKEN_TTL_HOURS", 12, minimum=1),
        trust_proxy_headers=_get_bool("TRUST_PROXY_HEADERS", default=False),
        rate_limit_enabled=_get_bool("RATE_LIMIT_ENABLED", default=environment != "test"),
        rate_limit_max_requests=_get_int("RATE_LIMIT_MAX_REQUESTS", 100, minimum=1),
        rate_limit_window_seconds=_get_int("RATE_LIMIT_WINDOW_SECONDS", 60, minimum=1),
        rate_limit_sweep_seconds=_get_int("RATE_LIMIT_SWEEP_SECONDS", 60, minimum=1),
        query_cache_persist_path=persist_path,
        query_cache_buster=_get_str("QUERY_CACHE_BUSTER", "v1") or "v1",
        query_cache_max_age_seconds=_get_int("QUERY_CACHE_MAX_AGE_SECONDS", 24 * 60 * 60, minimum=1),
        bootstrap_admin_email=_get_str("BOOTSTRAP_ADMIN_EMAIL").lower(),
        bootstrap_admin_password=_get_str("BOOTSTRAP_ADMIN_PASSWORD"),
        docs_enabled=_get_bool("DOCS_ENABLED", default=environment != "production"),
    )


__all__ = ["Settings", "get_settings", "PROJECT_ROOT"]
