# rms_desktop/core/network.py
"""
RMS Desktop – network probing
=============================

Public helpers
--------------
• format_http_url(host, port)   -> str
• detect_lan_ip()               -> str    (best effort, never raises)
• wait_for_ready(port, timeout) -> bool   (blocking TCP poll)

`wait_for_ready` sleeps between attempts and may block for the whole
timeout – never call it on the UI/event thread.
"""

from __future__ import annotations

import logging
import socket
import time

log = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"
_PROBE_TARGET = ("8.8.8.8", 80)     # only used to pick a route, nothing is sent

CONNECT_TIMEOUT = 0.25              # per attempt
POLL_INTERVAL = 0.2                 # between attempts


def format_http_url(host: str, port: int) -> str:
    if port == 80:
        return f"http://{host}"
    return f"http://{host}:{port}"


def detect_lan_ip() -> str:
    """
    Return the address of the interface the OS would route public
    traffic through, or the loopback address if that can't be determined.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(_PROBE_TARGET)
            address = sock.getsockname()[0]
    except OSError as exc:
        log.debug("LAN IP detection failed: %s", exc)
        return LOOPBACK

    if not address or address == "0.0.0.0":
        return LOOPBACK
    return address


def wait_for_ready(port: int, timeout: float, host: str = LOOPBACK) -> bool:
    """
    Poll `host:port` with short TCP connects until one succeeds (True)
    or `timeout` seconds have elapsed (False).
    """
    deadline = time.monotonic() + timeout

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break

        try:
            with socket.create_connection(
                (host, port), timeout=min(CONNECT_TIMEOUT, remaining)
            ):
                return True
        except OSError:
            pass

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        time.sleep(min(POLL_INTERVAL, remaining))

    log.debug("nothing listening on %s:%s after %.1fs", host, port, timeout)
    return False
