# rms_desktop/core/orchestrator.py
"""
RMS Desktop – launch sequence
=============================

One forward pass, no retries, one attempt per orchestrator:

    init → port → paths → runtime info → spawn → drain → await ready
         → open URL (Ready) | report (Failed)

Every step before the readiness wait fails fast. The readiness wait is
reported separately as a timeout, since the sidecar may be alive but slow
to bind. `run()` blocks for up to `ready_timeout` seconds, so call it
from a worker thread, never from the UI thread.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, Optional

from rms_desktop.core import config
from rms_desktop.core.assets import resolve_web_assets, web_asset_candidates
from rms_desktop.core.environment import HostEnvironment
from rms_desktop.core.errors import (
    DirectoryCreationError,
    LauncherError,
    ReadinessTimeoutError,
)
from rms_desktop.core.models import (
    Failed,
    LaunchConfig,
    LaunchOutcome,
    LaunchSettings,
    LogEvent,
    PortMode,
    Ready,
    RuntimeInfo,
)
from rms_desktop.core.network import detect_lan_ip, format_http_url, wait_for_ready
from rms_desktop.core.ports import select_port
from rms_desktop.core.sink import PresentationSink
from rms_desktop.core.supervisor import ProcessSupervisor, SidecarHandle, start_draining

log = logging.getLogger(__name__)


class LaunchState(str, enum.Enum):
    init = "init"
    port_acquired = "port-acquired"
    port_fixed = "port-fixed"
    paths_resolved = "paths-resolved"
    info_published = "info-published"
    spawning = "spawning"
    streaming_started = "streaming-started"
    awaiting_ready = "awaiting-ready"
    ready = "ready"
    failed = "failed"


class LaunchOrchestrator:
    def __init__(
        self,
        sink: PresentationSink,
        env: Optional[HostEnvironment] = None,
        settings: Optional[LaunchSettings] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        lan_ip: Callable[[], str] = detect_lan_ip,
    ) -> None:
        self.sink = sink
        self.env = env or HostEnvironment()
        self.settings = settings or LaunchSettings()
        self.supervisor = supervisor or ProcessSupervisor(self._sidecar_search_dirs())
        self._lan_ip = lan_ip

        self.state = LaunchState.init
        self.launch_config: Optional[LaunchConfig] = None
        self.runtime_info: Optional[RuntimeInfo] = None
        self.sidecar: Optional[SidecarHandle] = None
        self.drain_thread: Optional[threading.Thread] = None
        self.outcome: Optional[LaunchOutcome] = None

        self._started = False
        self._lock = threading.Lock()

    # ──────────────────────────────────────────────
    # helpers
    # ──────────────────────────────────────────────
    def _sidecar_search_dirs(self):
        dirs = []
        resource_dir = self.env.resource_dir()
        if resource_dir is not None:
            dirs.append(resource_dir)
        dirs.append(self.env.binaries_dir)
        return dirs

    def _info(self, text: str) -> None:
        log.debug(text)
        self.sink.append_log(LogEvent.info(text))

    def _enter(self, state: LaunchState) -> None:
        log.debug("launch state: %s -> %s", self.state.value, state.value)
        self.state = state

    # ──────────────────────────────────────────────
    # public entry
    # ──────────────────────────────────────────────
    def run(self) -> LaunchOutcome:
        """Perform the launch attempt and return its single outcome."""
        with self._lock:
            if self._started:
                raise RuntimeError("launch already attempted; create a new orchestrator")
            self._started = True

        try:
            outcome: LaunchOutcome = self._launch()
        except LauncherError as exc:
            self._enter(LaunchState.failed)
            log.error("launch failed (%s): %s", exc.kind, exc)
            self.sink.append_log(LogEvent.error(f"Launcher error: {exc}"))
            outcome = Failed(reason=str(exc), error_kind=exc.kind)

        self.outcome = outcome
        return outcome

    def _launch(self) -> Ready:
        s = self.settings
        self._info("Preparing local runtime...")

        # ── port
        port = select_port(s)
        if s.port_mode == PortMode.fixed:
            self._enter(LaunchState.port_fixed)
            self._info(f"Using fixed port: {port}")
        else:
            self._enter(LaunchState.port_acquired)
            self._info(f"Selected available port: {port}")

        # ── paths
        data_dir = self.env.app_data_dir()
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DirectoryCreationError(f"could not create data directory {data_dir}: {exc}") from exc

        db_path = str(data_dir / s.db_file_name)
        resource_dir = self.env.resource_dir()
        web_dist = resolve_web_assets(
            web_asset_candidates(resource_dir),
            search_root=resource_dir,
            fallback=self.env.workspace_dist,
        )
        self._enter(LaunchState.paths_resolved)

        # ── runtime info
        self.launch_config = LaunchConfig(
            host=s.host, port=port, db_path=db_path, web_dist_path=str(web_dist)
        )
        local_url = format_http_url(config.LOCALHOST, port)
        lan_url = format_http_url(self._lan_ip(), port)
        self.runtime_info = RuntimeInfo(local_url=local_url, lan_url=lan_url, db_path=db_path)

        self.sink.set_runtime_info(self.runtime_info)
        self._info(f"Database path: {db_path}")
        self._info(f"Serving web assets from: {web_dist}")
        self._info(f"LAN URL: {lan_url}")
        self._enter(LaunchState.info_published)

        # ── spawn
        self._enter(LaunchState.spawning)
        self._info("Starting sidecar runtime...")
        stream, handle = self.supervisor.spawn(s.binary_name, self.launch_config.sidecar_args())
        self.sidecar = handle.detach()

        self.drain_thread = start_draining(stream, self.sink)
        self._enter(LaunchState.streaming_started)

        # ── readiness
        self._enter(LaunchState.awaiting_ready)
        self._info("Waiting for HTTP server readiness...")
        if not wait_for_ready(port, s.ready_timeout):
            self._info("Server did not become ready within timeout.")
            raise ReadinessTimeoutError("Sidecar readiness timeout")

        self._info("Server is ready. Opening browser...")
        self.sink.open_external(local_url)
        self._info(f"Opened: {local_url}")
        self._enter(LaunchState.ready)
        return Ready(local_url=local_url)
