import time

import pytest

from rms_desktop.core import ports, supervisor
from rms_desktop.core.environment import HostEnvironment
from rms_desktop.core.errors import OpenExternalError, PortReservationError
from rms_desktop.core.models import Failed, LaunchSettings, PortMode, Ready
from rms_desktop.core.orchestrator import LaunchOrchestrator, LaunchState
from rms_desktop.core.supervisor import ProcessSupervisor


def _orchestrator(sink, host_env, locator, **settings):
    settings.setdefault("ready_timeout", 5.0)
    return LaunchOrchestrator(
        sink,
        env=host_env,
        settings=LaunchSettings(host="0.0.0.0", **settings),
        supervisor=ProcessSupervisor(locator=locator),
        lan_ip=lambda: "192.168.1.50",
    )


@pytest.fixture
def cleanup():
    orchestrators = []
    yield orchestrators.append
    for orch in orchestrators:
        if orch.sidecar is not None:
            supervisor._kill_for_tests(orch.sidecar)


def _wait_for_line(sink, text, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if text in sink.lines():
            return True
        time.sleep(0.05)
    return False


def test_ready_when_sidecar_listens_after_delay(sink, host_env, fake_sidecar, cleanup):
    orch = _orchestrator(sink, host_env, fake_sidecar("--delay", "0.3"))
    cleanup(orch)

    outcome = orch.run()

    port = orch.launch_config.port
    local_url = f"http://127.0.0.1:{port}"
    assert outcome == Ready(local_url=local_url)
    assert outcome.ok
    assert orch.state == LaunchState.ready

    assert sink.of("open") == [local_url]

    runtime = sink.of("runtime")
    assert len(runtime) == 1
    assert runtime[0].local_url == local_url
    assert runtime[0].lan_url == f"http://192.168.1.50:{port}"
    assert runtime[0].db_path == str(host_env.app_data_dir() / "rms-local.db")

    order = [(k, p.text if k == "log" else None) for k, p in sink.calls]
    assert order.index(("runtime", None)) < order.index(("log", "Starting sidecar runtime..."))
    assert f"Opened: {local_url}" in sink.lines()

    assert orch.sidecar.detached
    assert _wait_for_line(sink, f"[sidecar] listening on {port}")
    assert "[sidecar] booting" in sink.lines()


def test_timeout_when_sidecar_never_listens(sink, host_env, fake_sidecar, cleanup):
    orch = _orchestrator(sink, host_env, fake_sidecar("--never-listen"), ready_timeout=1.0)
    cleanup(orch)

    start = time.monotonic()
    outcome = orch.run()
    elapsed = time.monotonic() - start

    assert isinstance(outcome, Failed)
    assert outcome.error_kind == "readiness-timeout"
    assert outcome.reason == "Sidecar readiness timeout"
    assert 0.9 <= elapsed < 3.0
    assert sink.of("open") == []
    assert orch.state == LaunchState.failed
    assert "Server did not become ready within timeout." in sink.lines()
    assert "Launcher error: Sidecar readiness timeout" in sink.lines()


def test_sidecar_output_streams_while_waiting(sink, host_env, fake_sidecar, cleanup):
    orch = _orchestrator(sink, host_env, fake_sidecar("--never-listen"), ready_timeout=1.0)
    cleanup(orch)
    orch.run()

    assert "[sidecar] booting" in sink.lines()
    assert any(line.startswith("[sidecar:err] db=") for line in sink.lines())


def test_spawn_failure(sink, host_env):
    def _missing(name):
        raise FileNotFoundError(f"Sidecar '{name}' not found")

    orch = _orchestrator(sink, host_env, _missing)
    outcome = orch.run()

    assert outcome == Failed(reason="Sidecar 'rms-server-sidecar' not found", error_kind="spawn")
    assert len(sink.of("runtime")) == 1
    assert sink.of("open") == []
    assert orch.sidecar is None


def test_data_directory_failure(sink, tmp_path, fake_sidecar):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    env = HostEnvironment(
        data_dir_provider=lambda: blocker / "data",
        resource_dir_provider=lambda: None,
        workspace_root=tmp_path,
    )
    outcome = _orchestrator(sink, env, fake_sidecar()).run()

    assert outcome.error_kind == "directory-creation"
    assert sink.of("runtime") == []


def test_port_reservation_failure(sink, host_env, fake_sidecar, monkeypatch):
    def _fail():
        raise PortReservationError("could not reserve a local port: denied")

    monkeypatch.setattr(ports, "reserve_local_port", _fail)
    outcome = _orchestrator(sink, host_env, fake_sidecar()).run()

    assert outcome == Failed(reason="could not reserve a local port: denied", error_kind="port-reservation")
    assert sink.lines() == ["Preparing local runtime...", "Launcher error: could not reserve a local port: denied"]


def test_open_failure(sink, host_env, fake_sidecar, cleanup):
    sink.open_error = OpenExternalError("no browser available")
    orch = _orchestrator(sink, host_env, fake_sidecar("--delay", "0"))
    cleanup(orch)

    outcome = orch.run()

    assert outcome.error_kind == "open-external"
    assert len(sink.of("open")) == 1


def test_fixed_port_mode(sink, host_env, fake_sidecar, cleanup):
    port = ports.reserve_local_port()
    orch = _orchestrator(
        sink, host_env, fake_sidecar("--delay", "0"),
        port_mode=PortMode.fixed, fixed_port=port,
    )
    cleanup(orch)

    outcome = orch.run()

    assert outcome == Ready(local_url=f"http://127.0.0.1:{port}")
    assert f"Using fixed port: {port}" in sink.lines()


def test_sidecar_receives_argument_contract(sink, host_env, fake_sidecar, cleanup):
    orch = _orchestrator(sink, host_env, fake_sidecar("--never-listen"), ready_timeout=0.3)
    cleanup(orch)
    orch.run()

    cfg = orch.launch_config
    assert cfg.sidecar_args() == [
        "--host", "0.0.0.0",
        "--port", str(cfg.port),
        "--db-path", cfg.db_path,
        "--web-dist", str(host_env.workspace_dist),
    ]


def test_single_launch_per_orchestrator(sink, host_env):
    def _missing(name):
        raise FileNotFoundError("nope")

    orch = _orchestrator(sink, host_env, _missing)
    orch.run()
    with pytest.raises(RuntimeError):
        orch.run()


def test_packaged_assets_preferred_over_workspace_build(sink, tmp_path):
    resources = tmp_path / "resources"
    packaged = resources / "bundle" / "ui"
    packaged.mkdir(parents=True)
    (packaged / "index.html").write_text("<html></html>", encoding="utf-8")

    env = HostEnvironment(
        data_dir_provider=lambda: tmp_path / "appdata",
        resource_dir_provider=lambda: resources,
        workspace_root=tmp_path / "workspace",
    )
    env.workspace_dist.mkdir(parents=True)
    (env.workspace_dist / "index.html").write_text("<html></html>", encoding="utf-8")

    def _missing(name):
        raise FileNotFoundError("nope")

    orch = _orchestrator(sink, env, _missing)
    orch.run()

    assert orch.launch_config.web_dist_path == str(packaged)
    assert f"Serving web assets from: {packaged}" in sink.lines()
