"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``.

    ``EFFICIO_DATA_DIR`` in the environment wins over the platform default.
    """

    platform_id = (platform or sys.platform).lower()
    environ = dict(os.environ if env is None else env)
    override = environ.get("EFFICIO_DATA_DIR")
    if override:
        return Path(override).expanduser()

    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


APP_NAME = "Efficio"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "efficio.db"
CONFIG_PATH = DATA_DIR / "config.json"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class StoreSettings:
    db_path: Path = DB_PATH
    echo_sql: bool = False


@dataclass(frozen=True)
class SyncSettings:
    gateway_url: str = os.environ.get("EFFICIO_GATEWAY_URL", "http://localhost:5050/api/notion")
    health_url: str = os.environ.get("EFFICIO_HEALTH_URL", "http://localhost:5050/health")
    request_timeout_sec: float = 10.0
    start_offline: bool = _env_flag("EFFICIO_OFFLINE")
    probe_interval_sec: float = 15.0
    auto_archive_after_days: int = 5
    retry_errors: bool = True
    retry_backoff_cap_sec: int = 300
    retry_max_attempts: int = 8
    log_path: Path = SYNC_LOG_PATH


STORE = StoreSettings()
SYNC = SyncSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "CONFIG_PATH",
    "SYNC_LOG_PATH",
    "STORE",
    "SYNC",
    "StoreSettings",
    "SyncSettings",
    "get_default_data_dir",
]
