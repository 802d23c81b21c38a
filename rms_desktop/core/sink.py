# rms_desktop/core/sink.py
"""
RMS Desktop – presentation sinks
================================

The launch core never touches a window directly. It is handed an object
implementing `PresentationSink`:

• append_log(event)          best effort, never raises
• set_runtime_info(info)     called once per launch
• open_external(url)         raises OpenExternalError on failure

Implementations
---------------
StatusBoard   thread-safe in-memory state read by the status API
WebviewSink   StatusBoard + script calls into the pywebview window
ConsoleSink   headless runs, everything goes through `logging`
"""

from __future__ import annotations

import json
import logging
import threading
import webbrowser
from typing import Any, List, Optional, Protocol, Tuple

from rms_desktop.core.errors import OpenExternalError
from rms_desktop.core.models import LogChannel, LogEvent, OpenMode, RuntimeInfo

log = logging.getLogger(__name__)


class PresentationSink(Protocol):
    def append_log(self, event: LogEvent) -> None: ...

    def set_runtime_info(self, info: RuntimeInfo) -> None: ...

    def open_external(self, url: str) -> None: ...


def _open_in_browser(url: str) -> None:
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as exc:
        raise OpenExternalError(f"could not open {url}: {exc}") from exc
    if not opened:
        raise OpenExternalError(f"no browser available to open {url}")


# ──────────────────────────────────────────────
# Status board
# ──────────────────────────────────────────────
class StatusBoard:
    """Log backlog + runtime info, shared by the launch threads and the API."""

    def __init__(self, max_lines: int = 2000) -> None:
        self._lock = threading.Lock()
        self._lines: List[str] = []
        self._dropped = 0
        self._max_lines = max_lines
        self._runtime: Optional[RuntimeInfo] = None

    def append(self, line: str) -> int:
        """Store `line` and return its absolute index."""
        with self._lock:
            self._lines.append(line)
            if len(self._lines) > self._max_lines:
                del self._lines[0]
                self._dropped += 1
            return self._dropped + len(self._lines) - 1

    def set_runtime(self, info: RuntimeInfo) -> None:
        with self._lock:
            self._runtime = info

    @property
    def runtime(self) -> Optional[RuntimeInfo]:
        with self._lock:
            return self._runtime

    def lines_since(self, index: int = 0) -> Tuple[int, List[str]]:
        """
        Lines with absolute index >= `index`, plus the next index to ask for.
        Lines evicted from the backlog are skipped silently.
        """
        with self._lock:
            start = max(index - self._dropped, 0)
            return self._dropped + len(self._lines), self._lines[start:]


# ──────────────────────────────────────────────
# pywebview window
# ──────────────────────────────────────────────
class WebviewSink:
    """
    Mirrors every update into the status page via `window.evaluate_js`.
    The page defines `window.appendLog` and `window.setRuntimeInfo`;
    optional chaining keeps early calls harmless before it has loaded.
    """

    def __init__(self, board: StatusBoard, window: Any, open_mode: OpenMode = OpenMode.browser) -> None:
        self.board = board
        self.window = window
        self.open_mode = open_mode

    def _eval(self, script: str) -> None:
        try:
            self.window.evaluate_js(script)
        except Exception as exc:  # pywebview raises backend-specific errors
            log.warning("failed to evaluate script: %s", exc)

    def append_log(self, event: LogEvent) -> None:
        line = event.display()
        index = self.board.append(line)
        self._eval(f"window.appendLog?.({json.dumps(line)}, {index});")

    def set_runtime_info(self, info: RuntimeInfo) -> None:
        self.board.set_runtime(info)
        args = ", ".join(json.dumps(v) for v in (info.local_url, info.lan_url, info.db_path))
        self._eval(f"window.setRuntimeInfo?.({args});")

    def open_external(self, url: str) -> None:
        if self.open_mode == OpenMode.window:
            try:
                self.window.load_url(url)
            except Exception as exc:
                raise OpenExternalError(f"could not load {url}: {exc}") from exc
            return
        _open_in_browser(url)


# ──────────────────────────────────────────────
# Headless
# ──────────────────────────────────────────────
class ConsoleSink:
    def __init__(self, open_browser: bool = True) -> None:
        self.open_browser = open_browser
        self.runtime: Optional[RuntimeInfo] = None

    def append_log(self, event: LogEvent) -> None:
        if event.channel in (LogChannel.error, LogChannel.sidecar_stderr):
            log.warning(event.display())
        else:
            log.info(event.display())

    def set_runtime_info(self, info: RuntimeInfo) -> None:
        self.runtime = info
        log.info("Local URL: %s", info.local_url)

    def open_external(self, url: str) -> None:
        if not self.open_browser:
            log.info("Browser disabled, visit %s", url)
            return
        _open_in_browser(url)
