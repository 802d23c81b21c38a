# rms_desktop/core/environment.py
"""
Host environment providers: where persistent data lives, where the
packaged resources were unpacked, and where the workspace build output is.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from rms_desktop.core import config

# repository root when running from a checkout
WORKSPACE_ROOT: Path = Path(__file__).resolve().parents[2]


def _default_data_dir() -> Path:
    return config.DATA_DIR


def _default_resource_dir() -> Optional[Path]:
    """
    PyInstaller unpacks bundled files to sys._MEIPASS; other freezers put
    them next to the executable. `RMS_RESOURCE_DIR` wins over both.
    Returns None for a plain source checkout.
    """
    if env := os.getenv("RMS_RESOURCE_DIR"):
        return Path(env).expanduser()

    if getattr(sys, "frozen", False):
        return Path(getattr(sys, "_MEIPASS", Path(sys.executable).resolve().parent))

    return None


@dataclass
class HostEnvironment:
    data_dir_provider: Callable[[], Path] = _default_data_dir
    resource_dir_provider: Callable[[], Optional[Path]] = _default_resource_dir
    workspace_root: Path = WORKSPACE_ROOT

    def app_data_dir(self) -> Path:
        """Not created here; the launch sequence does that."""
        return self.data_dir_provider()

    def resource_dir(self) -> Optional[Path]:
        try:
            return self.resource_dir_provider()
        except OSError:
            return None

    @property
    def workspace_dist(self) -> Path:
        if env := os.getenv("RMS_WEB_DIST"):
            return Path(env).expanduser()
        return self.workspace_root / "web" / "dist"

    @property
    def binaries_dir(self) -> Path:
        return self.workspace_root / "binaries"
