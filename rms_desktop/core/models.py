# rms_desktop/core/models.py
"""
RMS Desktop – shared data models
================================

The orchestrator, the supervisor, the presentation sinks and the status
API communicate through the **typed** value objects defined here.

Avoid adding business logic – that belongs in the `core/` sub-modules.
"""

from __future__ import annotations

import enum
from typing import List, Union

from pydantic import BaseModel, Field, validator


# ──────────────────────────────────────────────
# 1. Settings
# ──────────────────────────────────────────────
class PortMode(str, enum.Enum):
    dynamic = "dynamic"      # ephemeral port reserved per launch
    fixed = "fixed"          # well-known port, usually 80


class OpenMode(str, enum.Enum):
    browser = "browser"      # system default browser
    window = "window"        # navigate the launcher window itself


class LaunchSettings(BaseModel):
    host: str = "0.0.0.0"
    port_mode: PortMode = PortMode.dynamic
    fixed_port: int = 80
    ready_timeout: float = Field(10.0, gt=0)
    open_mode: OpenMode = OpenMode.browser
    binary_name: str = "rms-server-sidecar"
    db_file_name: str = "rms-local.db"

    @validator("fixed_port")
    def port_range(cls, v: int) -> int:
        if not (1 <= v <= 65535):
            raise ValueError("port must be between 1 and 65535")
        return v

    class Config:
        frozen = True


# ──────────────────────────────────────────────
# 2. Launch configuration
# ──────────────────────────────────────────────
class LaunchConfig(BaseModel):
    """Everything the sidecar needs, computed once per launch attempt."""
    host: str
    port: int
    db_path: str
    web_dist_path: str

    @validator("port")
    def port_range(cls, v: int) -> int:
        if not (1 <= v <= 65535):
            raise ValueError("port must be between 1 and 65535")
        return v

    class Config:
        frozen = True

    def sidecar_args(self) -> List[str]:
        # flag names & order are a contract with the sidecar binary
        return [
            "--host", self.host,
            "--port", str(self.port),
            "--db-path", self.db_path,
            "--web-dist", self.web_dist_path,
        ]


class RuntimeInfo(BaseModel):
    local_url: str
    lan_url: str
    db_path: str

    class Config:
        frozen = True


# ──────────────────────────────────────────────
# 3. Log events
# ──────────────────────────────────────────────
class LogChannel(str, enum.Enum):
    info = "info"
    sidecar_stdout = "sidecar-stdout"
    sidecar_stderr = "sidecar-stderr"
    error = "error"


_PREFIXES = {
    LogChannel.info: "",
    LogChannel.sidecar_stdout: "[sidecar] ",
    LogChannel.sidecar_stderr: "[sidecar:err] ",
    LogChannel.error: "",
}


class LogEvent(BaseModel):
    channel: LogChannel
    text: str

    class Config:
        frozen = True

    @classmethod
    def info(cls, text: str) -> "LogEvent":
        return cls(channel=LogChannel.info, text=text)

    @classmethod
    def error(cls, text: str) -> "LogEvent":
        return cls(channel=LogChannel.error, text=text)

    def display(self) -> str:
        """Line as shown in the launcher log pane."""
        return f"{_PREFIXES[self.channel]}{self.text}"


# ──────────────────────────────────────────────
# 4. Launch outcome
# ──────────────────────────────────────────────
class Ready(BaseModel):
    local_url: str

    class Config:
        frozen = True

    @property
    def ok(self) -> bool:
        return True


class Failed(BaseModel):
    reason: str
    error_kind: str = "launcher"

    class Config:
        frozen = True

    @property
    def ok(self) -> bool:
        return False


LaunchOutcome = Union[Ready, Failed]
