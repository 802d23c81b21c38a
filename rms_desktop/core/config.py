# rms_desktop/core/config.py
"""
RMS Desktop – central configuration helper
==========================================

All modules import *only* from this file when they need:
• application constants (name, sidecar binary, bind host, timeouts)
• resolved user-specific paths (data/, logs/, config/)
• persisted user settings (port policy, open mode, window size, …)

This file does *not* perform any network I/O and creates no directories
at import time. The data directory is created by the launch sequence.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import shutil
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from rms_desktop.core.models import LaunchSettings, OpenMode, PortMode

log = logging.getLogger(__name__)

# ──────────────────────────────────────────────
# 1. Application constants
# ──────────────────────────────────────────────
APP_NAME: str = "RMS Desktop"
APP_ID: str = "rms-desktop"
LAUNCHER_VERSION: str = "0.1.0"

SERVER_HOST: str = "0.0.0.0"             # sidecar bind address
LOCALHOST: str = "127.0.0.1"
SIDECAR_BINARY: str = "rms-server-sidecar"
DB_FILE_NAME: str = "rms-local.db"
READY_TIMEOUT: float = 10.0              # seconds
FIXED_PORT: int = 80                     # only used with portMode=fixed

# file & directory names
CONFIG_FILE_NAME = "settings.json"
LOG_FILE_NAME = "launcher.log"


# ──────────────────────────────────────────────
# 2. Directory resolution helpers
# ──────────────────────────────────────────────
def _home_base() -> Path:
    """Return the root folder for all user data (`~/.rms/` on Unix,
    `%LOCALAPPDATA%\\RMS\\` on Windows). Can be overridden with
    the env variable `RMS_HOME`."""
    if env := os.getenv("RMS_HOME"):
        return Path(env).expanduser().resolve()

    if platform.system() == "Windows":
        root = Path(os.getenv("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return (root / "RMS").resolve()

    return (Path.home() / ".rms").resolve()


BASE_DIR: Path = _home_base()
DATA_DIR: Path = BASE_DIR / "data"
LOG_DIR: Path = BASE_DIR / "logs"
CONFIG_DIR: Path = BASE_DIR / "config"


def ensure_dirs() -> None:
    """Create the log & config directories (no error if they exist).

    DATA_DIR is created by the launch sequence.
    """
    for d in (LOG_DIR, CONFIG_DIR):
        d.mkdir(parents=True, exist_ok=True)


# ──────────────────────────────────────────────
# 3. User settings (read / write)
# ──────────────────────────────────────────────
_CONFIG_PATH: Path = CONFIG_DIR / CONFIG_FILE_NAME
_DEFAULT_SETTINGS: Dict[str, Any] = {
    "portMode": PortMode.dynamic.value,
    "fixedPort": FIXED_PORT,
    "readyTimeout": READY_TIMEOUT,
    "openMode": OpenMode.browser.value,
    "window": {"width": 960, "height": 640},
}


def _load_raw() -> Dict[str, Any]:
    if _CONFIG_PATH.exists():
        try:
            with _CONFIG_PATH.open(encoding="utf-8") as fh:
                data = json.load(fh)
            if isinstance(data, dict):
                return data
        except (json.JSONDecodeError, OSError):
            pass
        _backup_config()
    return {}


def _backup_config() -> None:
    """Keep a copy of an unusable settings file before falling back."""
    shutil.copy2(_CONFIG_PATH, _CONFIG_PATH.with_suffix(".bak"))


def read_config() -> Dict[str, Any]:
    """Return merged settings (defaults overridden by user values)."""
    cfg = _DEFAULT_SETTINGS.copy()
    cfg.update(_load_raw())
    return cfg


def save_config(new_cfg: Dict[str, Any]) -> None:
    """Persist updated user settings atomically."""
    _CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    tmp = _CONFIG_PATH.with_suffix(".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(new_cfg, fh, indent=2)
    tmp.replace(_CONFIG_PATH)


# ──────────────────────────────────────────────
# 4. Helper utilities (public API)
# ──────────────────────────────────────────────
def launch_settings(overrides: Dict[str, Any] | None = None) -> LaunchSettings:
    """
    Build the immutable LaunchSettings for one launch attempt from the
    persisted settings, optionally overridden (e.g. by CLI flags).

    A settings file holding invalid values is backed up and ignored; the
    defaults are used instead. Invalid overrides still raise.
    """
    cfg = read_config()
    try:
        _settings_from(cfg)
    except ValidationError as exc:
        log.warning("ignoring invalid settings in %s: %s", _CONFIG_PATH, exc)
        if _CONFIG_PATH.exists():
            _backup_config()
        cfg = _DEFAULT_SETTINGS.copy()

    if overrides:
        cfg.update({k: v for k, v in overrides.items() if v is not None})
    return _settings_from(cfg)


def _settings_from(cfg: Dict[str, Any]) -> LaunchSettings:
    return LaunchSettings(
        host=SERVER_HOST,
        port_mode=cfg["portMode"],
        fixed_port=cfg["fixedPort"],
        ready_timeout=cfg["readyTimeout"],
        open_mode=cfg["openMode"],
        binary_name=SIDECAR_BINARY,
        db_file_name=DB_FILE_NAME,
    )


def log_path() -> Path:
    return LOG_DIR / LOG_FILE_NAME


# ──────────────────────────────────────────────
# Unit-test helpers
# ──────────────────────────────────────────────
def _reset_for_tests(tmp_path: Path) -> None:  # pragma: no cover
    """Internal helper: redirect BASE_DIR during pytest."""
    global BASE_DIR, DATA_DIR, LOG_DIR, CONFIG_DIR, _CONFIG_PATH
    BASE_DIR = tmp_path
    DATA_DIR = BASE_DIR / "data"
    LOG_DIR = BASE_DIR / "logs"
    CONFIG_DIR = BASE_DIR / "config"
    _CONFIG_PATH = CONFIG_DIR / CONFIG_FILE_NAME
    ensure_dirs()
