import sys
import textwrap
import threading

import pytest

from rms_desktop.core import config
from rms_desktop.core.environment import HostEnvironment

FAKE_SIDECAR = textwrap.dedent(
    """
    import argparse, socket, sys, time

    p = argparse.ArgumentParser()
    p.add_argument("--host")
    p.add_argument("--port", type=int)
    p.add_argument("--db-path")
    p.add_argument("--web-dist")
    p.add_argument("--delay", type=float, default=0.3)
    p.add_argument("--never-listen", action="store_true")
    p.add_argument("--linger", type=float, default=30)
    args = p.parse_args()

    print("booting", flush=True)
    print("", flush=True)
    print("db=" + args.db_path, file=sys.stderr, flush=True)

    if args.never_listen:
        time.sleep(30)
        sys.exit(0)

    time.sleep(args.delay)
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    srv.bind((args.host, args.port))
    srv.listen()
    print("listening on %d" % args.port, flush=True)
    time.sleep(args.linger)
    """
)


class RecordingSink:
    """Collects everything the launch core reports, in call order."""

    def __init__(self, open_error=None):
        self.calls = []
        self.open_error = open_error
        self._lock = threading.Lock()

    def append_log(self, event):
        with self._lock:
            self.calls.append(("log", event))

    def set_runtime_info(self, info):
        with self._lock:
            self.calls.append(("runtime", info))

    def open_external(self, url):
        with self._lock:
            self.calls.append(("open", url))
        if self.open_error is not None:
            raise self.open_error

    def of(self, kind):
        with self._lock:
            return [payload for k, payload in self.calls if k == kind]

    def lines(self):
        return [e.display() for e in self.of("log")]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.delenv("RMS_SIDECAR_PATH", raising=False)
    monkeypatch.delenv("RMS_RESOURCE_DIR", raising=False)
    monkeypatch.delenv("RMS_WEB_DIST", raising=False)
    config._reset_for_tests(tmp_path / "home")
    return tmp_path / "home"


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def host_env(tmp_path):
    return HostEnvironment(
        data_dir_provider=lambda: tmp_path / "appdata",
        resource_dir_provider=lambda: None,
        workspace_root=tmp_path / "workspace",
    )


@pytest.fixture
def fake_sidecar(tmp_path):
    """Returns a locator factory: extra args are appended after the script."""
    script = tmp_path / "fake_sidecar.py"
    script.write_text(FAKE_SIDECAR, encoding="utf-8")

    def _locator(*extra):
        return lambda binary_name: [sys.executable, str(script), *extra]

    return _locator
