# rms_desktop/main.py
"""
RMS Desktop – launcher entry point
==================================

The launcher window shows a small status page (served by this FastAPI
app on a background thread) while the launch sequence starts the RMS
server sidecar and opens it.

Run options
-----------
• Desktop window:          python run_launcher_desktop.py
• Headless (no window):    python -m rms_desktop.main --headless
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from rms_desktop.core import config
from rms_desktop.core.logs import setup_logging
from rms_desktop.core.network import wait_for_ready
from rms_desktop.core.orchestrator import LaunchOrchestrator
from rms_desktop.core.ports import reserve_local_port
from rms_desktop.core.sink import ConsoleSink, StatusBoard, WebviewSink

try:
    import webview  # type: ignore
except ModuleNotFoundError:
    webview = None  # run_desktop() will raise

log = logging.getLogger(__name__)

# ────────────────────────────── template setup
BASE_PATH = Path(__file__).resolve().parent
TEMPLATES = Jinja2Templates(directory=str(BASE_PATH / "templates"))

app = FastAPI(
    title=config.APP_NAME,
    version=config.LAUNCHER_VERSION,
    docs_url=None,
    redoc_url=None,
)

app.mount(
    "/static",
    StaticFiles(directory=str(BASE_PATH / "static"), html=False),
    name="static",
)

# ────────────────────────────── pages
PAGE_CONTEXT: Dict[str, str] = {
    "app_name": config.APP_NAME,
    "launcher_version": config.LAUNCHER_VERSION,
}


@app.get("/", response_class=HTMLResponse)
async def page_status(request: Request):
    return TEMPLATES.TemplateResponse(request, "pages/status.html", {**PAGE_CONTEXT})


# ────────────────────────────── API routers
runtime = importlib.import_module("rms_desktop.api.runtime")

app.include_router(runtime.router, prefix="/api")


# ────────────────────────────── launch helpers
def _launch(orchestrator: LaunchOrchestrator) -> None:
    """Runs on pywebview's worker thread, off the GUI loop."""
    outcome = orchestrator.run()
    if not outcome.ok:
        log.error("failed to start sidecar: %s", outcome.reason)


def _run_uvicorn_bg(host: str, port: int) -> None:
    def _target():
        uvicorn.run(app, host=host, port=port, log_level="error")
    threading.Thread(target=_target, name="status-ui", daemon=True).start()


def run_desktop(
    host: str = "127.0.0.1",
    port: Optional[int] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> None:
    if webview is None:
        raise RuntimeError("pywebview not installed – run:  pip install pywebview")

    launch_settings = config.launch_settings(overrides)

    board = StatusBoard()
    app.state.board = board

    ui_port = port or reserve_local_port(host)
    _run_uvicorn_bg(host, ui_port)
    if not wait_for_ready(ui_port, 5.0, host=host):
        raise RuntimeError(f"status page did not come up on {host}:{ui_port}")

    win = config.read_config().get("window", {})
    window = webview.create_window(
        title=config.APP_NAME,
        url=f"http://{host}:{ui_port}/",
        width=win.get("width", 960),
        height=win.get("height", 640),
    )

    sink = WebviewSink(board, window, launch_settings.open_mode)
    orchestrator = LaunchOrchestrator(sink, settings=launch_settings)

    webview.start(_launch, (orchestrator,))


def run_headless(overrides: Optional[Dict[str, Any]] = None, open_browser: bool = True) -> int:
    """
    Launch without a window. Blocks until the sidecar exits so its output
    keeps flowing into the log; returns the process exit code.
    """
    orchestrator = LaunchOrchestrator(
        ConsoleSink(open_browser=open_browser),
        settings=config.launch_settings(overrides),
    )
    outcome = orchestrator.run()
    if not outcome.ok:
        return 1

    try:
        if orchestrator.drain_thread is not None:
            orchestrator.drain_thread.join()
    except KeyboardInterrupt:
        log.info("Interrupted, leaving sidecar running")
    return 0


# ────────────────────────────── CLI
def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description=f"{config.APP_NAME} launcher")
    p.add_argument("--headless", action="store_true", help="no window, log to console")
    p.add_argument("--no-browser", action="store_true", help="headless: don't open a browser")
    p.add_argument("--port-mode", choices=["dynamic", "fixed"])
    p.add_argument("--fixed-port", type=int)
    p.add_argument("--timeout", type=float, help="readiness timeout in seconds")
    p.add_argument("--open-mode", choices=["browser", "window"])
    p.add_argument("--log-level", default="INFO")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    setup_logging(args.log_level)

    overrides = {
        "portMode": args.port_mode,
        "fixedPort": args.fixed_port,
        "readyTimeout": args.timeout,
        "openMode": args.open_mode,
    }

    if args.headless:
        return run_headless(overrides, open_browser=not args.no_browser)

    run_desktop(overrides=overrides)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
