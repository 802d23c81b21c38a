# rms_desktop/core/ports.py
"""
Port selection for the sidecar.

Known limitation: `reserve_local_port` only proves the port was free when
we looked. The listener is closed before the sidecar binds, so another
process may grab the port in between. Not mitigated.
"""

from __future__ import annotations

import logging
import socket

from rms_desktop.core.errors import PortReservationError
from rms_desktop.core.models import LaunchSettings, PortMode

log = logging.getLogger(__name__)


def reserve_local_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for a currently unused TCP port on `host`."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, 0))
            port = sock.getsockname()[1]
    except OSError as exc:
        raise PortReservationError(f"could not reserve a local port: {exc}") from exc

    log.debug("reserved ephemeral port %s", port)
    return port


def select_port(settings: LaunchSettings) -> int:
    """Dynamic mode reserves a fresh port, fixed mode bypasses reservation."""
    if settings.port_mode == PortMode.fixed:
        return settings.fixed_port
    return reserve_local_port()
