# rms_desktop/core/supervisor.py
"""
RMS Desktop – sidecar process supervisor
========================================

This module is responsible for locating the sidecar binary, spawning it
with the launch arguments and turning its stdout/stderr into a stream of
events that can be drained into the launcher log.

Public helpers
--------------
• target_triple() -> str | None
• locate_sidecar(binary_name, search_dirs) -> Path
• ProcessSupervisor.spawn(binary_name, args) -> (OutputStream, SidecarHandle)
• drain_output(stream, sink)        (blocks until the stream closes)
• start_draining(stream, sink) -> Thread   (fire-and-forget)

Lifetime policy: once spawned, the sidecar is *not* terminated by the
launcher. Callers `detach()` the handle, which parks it in a module-level
registry for the rest of the process lifetime.

Threads: each spawn runs one reader thread per pipe plus a watcher that
waits for both readers and the exit code, all feeding a single queue.
`start_draining` adds the one consumer of that queue. All of them are
daemon threads and end with the child (or with the launcher process).
"""

from __future__ import annotations

import enum
import logging
import os
import platform
import queue
import shutil
import subprocess
import sys
import threading
from pathlib import Path
from typing import IO, Callable, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple

from rms_desktop.core.errors import SpawnError
from rms_desktop.core.models import LogChannel, LogEvent

log = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# 1. Locate sidecar binary
# ──────────────────────────────────────────────
_ARCHES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "arm64": "aarch64",
    "aarch64": "aarch64",
}

_TRIPLE_SUFFIX = {
    "Linux": "unknown-linux-gnu",
    "Darwin": "apple-darwin",
    "Windows": "pc-windows-msvc",
}

_TRIPLE_ENV_KEYS = ("SIDECAR_TARGET_TRIPLE", "CARGO_BUILD_TARGET")


def target_triple() -> Optional[str]:
    """
    Target triple the sidecar was compiled for, e.g.
    `x86_64-unknown-linux-gnu`. Bundles ship the binary as
    `<name>-<triple>[.exe]`.
    """
    for key in _TRIPLE_ENV_KEYS:
        if value := os.getenv(key, "").strip():
            return value.removesuffix(".exe")

    arch = _ARCHES.get(platform.machine().lower())
    suffix = _TRIPLE_SUFFIX.get(platform.system())
    if arch is None or suffix is None:
        return None
    return f"{arch}-{suffix}"


def _is_executable(path: Path) -> bool:
    if not path.is_file():
        return False
    return platform.system() == "Windows" or os.access(path, os.X_OK)


def locate_sidecar(binary_name: str, search_dirs: Sequence[Path]) -> Path:
    """
    Return the sidecar executable.

    Lookup order: `RMS_SIDECAR_PATH`, then every search dir (triple-suffixed
    name first, then the plain name), then PATH.

    Raises FileNotFoundError if the binary is missing.
    """
    if env := os.getenv("RMS_SIDECAR_PATH"):
        path = Path(env).expanduser()
        if not _is_executable(path):
            raise FileNotFoundError(f"RMS_SIDECAR_PATH does not point to an executable: {path}")
        return path.resolve()

    ext = ".exe" if platform.system() == "Windows" else ""
    names = [f"{binary_name}{ext}"]
    triple = target_triple()
    if triple:
        names.insert(0, f"{binary_name}-{triple}{ext}")

    for directory in search_dirs:
        for name in names:
            cand = directory / name
            if _is_executable(cand):
                return cand.resolve()

    if found := shutil.which(binary_name):
        return Path(found).resolve()

    raise FileNotFoundError(f"Sidecar '{binary_name}' not found")


# ──────────────────────────────────────────────
# 2. Output stream
# ──────────────────────────────────────────────
class EventKind(str, enum.Enum):
    stdout = "stdout"
    stderr = "stderr"
    error = "error"
    terminated = "terminated"


class CommandEvent(NamedTuple):
    kind: EventKind
    line: str = ""
    code: Optional[int] = None


class OutputStream:
    """
    Events produced by a running sidecar. Iterating blocks until the next
    event and ends once the child has closed both pipes and exited.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue()

    def put(self, event: CommandEvent) -> None:
        self._queue.put(event)

    def close(self) -> None:
        self._queue.put(self._CLOSED)

    def __iter__(self) -> Iterator[CommandEvent]:
        while True:
            item = self._queue.get()
            if item is self._CLOSED:
                return
            yield item

    @classmethod
    def from_events(cls, events: Iterable[CommandEvent]) -> "OutputStream":
        """An already-closed stream, mostly useful for tests."""
        stream = cls()
        for event in events:
            stream.put(event)
        stream.close()
        return stream

    @classmethod
    def attach(cls, process: subprocess.Popen) -> "OutputStream":
        stream = cls()
        readers = [
            threading.Thread(
                target=stream._pump, args=(pipe, kind),
                name=f"sidecar-{kind.value}", daemon=True,
            )
            for pipe, kind in ((process.stdout, EventKind.stdout),
                               (process.stderr, EventKind.stderr))
            if pipe is not None
        ]
        for t in readers:
            t.start()

        threading.Thread(
            target=stream._watch, args=(process, readers),
            name="sidecar-watch", daemon=True,
        ).start()
        return stream

    def _pump(self, pipe: IO[bytes], kind: EventKind) -> None:
        try:
            for raw in iter(pipe.readline, b""):
                self.put(CommandEvent(kind, raw.decode("utf-8", errors="replace")))
        except (OSError, ValueError) as exc:
            self.put(CommandEvent(EventKind.error, f"{kind.value} read failed: {exc}"))
        finally:
            pipe.close()

    def _watch(self, process: subprocess.Popen, readers: List[threading.Thread]) -> None:
        for t in readers:
            t.join()
        self.put(CommandEvent(EventKind.terminated, code=process.wait()))
        self.close()


# ──────────────────────────────────────────────
# 3. Process handle
# ──────────────────────────────────────────────
_DETACHED: List["SidecarHandle"] = []
_DETACHED_LOCK = threading.Lock()


class SidecarHandle:
    """The spawned sidecar. Dropping it never terminates the child."""

    def __init__(self, process: subprocess.Popen) -> None:
        self._process = process
        self.detached = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.poll()

    def detach(self) -> "SidecarHandle":
        """Hand the child over to the process-wide registry; idempotent."""
        with _DETACHED_LOCK:
            if not self.detached:
                _DETACHED.append(self)
                self.detached = True
        return self


# ──────────────────────────────────────────────
# 4. Spawn
# ──────────────────────────────────────────────
def _prepare_env() -> dict:
    """
    Copy of os.environ. Inside a frozen macOS bundle the DYLD_* variables
    point at the bundle's libraries and must not leak into the child.
    """
    env = os.environ.copy()
    if getattr(sys, "frozen", False):
        env = {k: v for k, v in env.items() if not k.startswith("DYLD_")}
    return env


class ProcessSupervisor:
    """
    Spawns sidecars found in `search_dirs`. `locator` replaces the lookup
    entirely and returns the command prefix (e.g. an interpreter + script).
    """

    def __init__(
        self,
        search_dirs: Sequence[Path] = (),
        locator: Optional[Callable[[str], List[str]]] = None,
    ) -> None:
        self.search_dirs = list(search_dirs)
        self._locator = locator

    def command_for(self, binary_name: str) -> List[str]:
        if self._locator is not None:
            return list(self._locator(binary_name))
        return [str(locate_sidecar(binary_name, self.search_dirs))]

    def spawn(self, binary_name: str, args: Sequence[str]) -> Tuple[OutputStream, SidecarHandle]:
        try:
            cmd = self.command_for(binary_name) + list(args)
        except FileNotFoundError as exc:
            raise SpawnError(str(exc)) from exc

        creationflags = subprocess.CREATE_NO_WINDOW if sys.platform == "win32" else 0

        log.info("Starting sidecar: %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=_prepare_env(),
                creationflags=creationflags,
            )
        except OSError as exc:
            raise SpawnError(f"failed to start {binary_name}: {exc}") from exc

        log.info("Sidecar running (PID: %s)", proc.pid)
        return OutputStream.attach(proc), SidecarHandle(proc)


# ──────────────────────────────────────────────
# 5. Drain output into the log
# ──────────────────────────────────────────────
_CHANNELS = {
    EventKind.stdout: LogChannel.sidecar_stdout,
    EventKind.stderr: LogChannel.sidecar_stderr,
}


def drain_output(stream: OutputStream, sink) -> None:
    """Forward every non-blank output line to `sink` until the stream closes."""
    for event in stream:
        if event.kind in _CHANNELS:
            text = event.line.strip()
            if text:
                sink.append_log(LogEvent(channel=_CHANNELS[event.kind], text=text))
        elif event.kind is EventKind.error:
            log.warning("sidecar output: %s", event.line)
            sink.append_log(LogEvent.error(event.line))
        elif event.kind is EventKind.terminated:
            log.debug("sidecar exited with code %s", event.code)
            sink.append_log(LogEvent.info(f"Sidecar exited with code {event.code}"))


def start_draining(stream: OutputStream, sink) -> threading.Thread:
    """
    Drain on a daemon thread. Nobody joins it on shutdown; it ends with the
    child or with the launcher process.
    """
    t = threading.Thread(
        target=drain_output, args=(stream, sink), name="sidecar-drain", daemon=True
    )
    t.start()
    return t


# ──────────────────────────────────────────────
# Unit-test helpers
# ──────────────────────────────────────────────
def _detached_for_tests() -> List[SidecarHandle]:  # pragma: no cover
    with _DETACHED_LOCK:
        return list(_DETACHED)


def _kill_for_tests(handle: SidecarHandle) -> None:  # pragma: no cover
    """Internal helper: stop a sidecar left running by a pytest case."""
    if handle.returncode is None:
        handle._process.kill()
        handle._process.wait()
