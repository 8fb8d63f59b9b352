"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

STORE_BACKENDS = {"file", "postgres"}


class ConfigError(RuntimeError):
    """Raised when configuration values are present but unusable."""


@dataclass(frozen=True)
class Settings:
    store_backend: str = "file"
    store_path: str = "gmes_results.json"
    store_key: str = "gmes_results"
    database_url: str = ""
    cdp_url: str = "http://localhost:9222"
    cdp_timeout_ms: int = 15000
    export_dir: str = "."
    server_port: int = 9000
    log_level: str = "INFO"


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    store_backend = os.getenv("STORE_BACKEND", "file").strip().lower() or "file"
    if store_backend not in STORE_BACKENDS:
        raise ConfigError(f"STORE_BACKEND must be one of {sorted(STORE_BACKENDS)}, got {store_backend!r}")

    store_path = os.getenv("STORE_PATH", "gmes_results.json")
    store_key = os.getenv("STORE_KEY", "gmes_results") or "gmes_results"
    database_url = os.getenv("DATABASE_URL", "")
    cdp_url = os.getenv("CDP_URL", "http://localhost:9222")
    cdp_timeout_ms = _get_int_env("CDP_TIMEOUT_MS", 15000)
    export_dir = os.getenv("EXPORT_DIR", ".")
    server_port = _get_int_env("PORT", _get_int_env("SERVER_PORT", 9000))
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    if store_backend == "postgres" and not database_url:
        logger.warning("DATABASE_URL is not set; the postgres store will fail.")
    if not cdp_url:
        logger.warning("CDP_URL is not configured; live browser snapshots are unavailable.")

    return Settings(
        store_backend=store_backend,
        store_path=store_path,
        store_key=store_key,
        database_url=database_url,
        cdp_url=cdp_url,
        cdp_timeout_ms=cdp_timeout_ms,
        export_dir=export_dir,
        server_port=server_port,
        log_level=log_level,
    )
