# rms_desktop/core/errors.py
"""
Launcher error kinds.

All of them end up as one human-readable line in the log pane; `kind`
only lets callers (and tests) tell a slow sidecar from a broken one.
"""

from __future__ import annotations


class LauncherError(RuntimeError):
    kind: str = "launcher"


class PortReservationError(LauncherError):
    kind = "port-reservation"


class DirectoryCreationError(LauncherError):
    kind = "directory-creation"


class SpawnError(LauncherError):
    kind = "spawn"


class ReadinessTimeoutError(LauncherError):
    kind = "readiness-timeout"


class OpenExternalError(LauncherError):
    kind = "open-external"
