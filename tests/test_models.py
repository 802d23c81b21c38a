import pytest
from pydantic import ValidationError

from rms_desktop.core.models import (
    Failed,
    LaunchConfig,
    LaunchSettings,
    LogChannel,
    LogEvent,
    PortMode,
    Ready,
)


def test_launch_config_arguments():
    cfg = LaunchConfig(host="0.0.0.0", port=4321, db_path="/d/rms.db", web_dist_path="/w")
    assert cfg.sidecar_args() == [
        "--host", "0.0.0.0", "--port", "4321", "--db-path", "/d/rms.db", "--web-dist", "/w",
    ]


@pytest.mark.parametrize("port", [0, 65536, -1])
def test_launch_config_rejects_bad_ports(port):
    with pytest.raises(ValidationError):
        LaunchConfig(host="0.0.0.0", port=port, db_path="x", web_dist_path="y")


def test_launch_config_is_immutable():
    cfg = LaunchConfig(host="0.0.0.0", port=1, db_path="x", web_dist_path="y")
    with pytest.raises((TypeError, ValidationError)):
        cfg.port = 2


def test_log_event_display():
    assert LogEvent.info("hi").display() == "hi"
    assert LogEvent(channel=LogChannel.sidecar_stdout, text="x").display() == "[sidecar] x"
    assert LogEvent(channel="sidecar-stderr", text="x").display() == "[sidecar:err] x"


def test_outcomes():
    assert Ready(local_url="http://127.0.0.1").ok
    assert not Failed(reason="nope").ok


def test_settings_defaults():
    s = LaunchSettings()
    assert s.port_mode == PortMode.dynamic
    assert s.fixed_port == 80
    assert s.ready_timeout == 10.0
