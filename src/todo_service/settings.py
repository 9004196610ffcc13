from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'sqlite' (default) or 'memory'
    - SQLITE_DB_PATH: path to sqlite db file. Default './todo.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - SECRET_KEY: token signing secret. A random per-process key is used when unset.
    - CACHE_TTL_SECONDS: lifetime of the cached todo listing (default: 60)
    - CACHE_INVALIDATE_ON_WRITE: 'true' to evict the cached listing on every write (default: false)
    - LOG_LEVEL: root log level (default: INFO)
    - HOST / PORT: bind address used by `serve()` (default: 0.0.0.0:8080)

    Constructing Settings() directly (as tests do) defaults to the memory backend.
    """

    persistence_backend: str = "memory"
    sqlite_db_path: str = "./todo.db"
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    secret_key: Optional[str] = None
    cache_ttl_seconds: float = 60.0
    cache_invalidate_on_write: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080


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


def _parse_number(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "sqlite").strip().lower()
    if backend not in {"memory", "sqlite"}:
        backend = "sqlite"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./todo.db").strip()
    origins = _parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*"))

    secret = os.getenv("SECRET_KEY") or None
    cache_ttl = _parse_number(_get_env("CACHE_TTL_SECONDS", "60"), 60.0)
    invalidate = _parse_bool(_get_env("CACHE_INVALIDATE_ON_WRITE", "false"), False)

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        secret_key=secret,
        cache_ttl_seconds=cache_ttl,
        cache_invalidate_on_write=invalidate,
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=int(_parse_number(_get_env("PORT", "8080"), 8080)),
    )
