"""
Standalone entry point that *always* launches a native window.
Run via:  python run_launcher_desktop.py
"""

from rms_desktop.core.logs import setup_logging
from rms_desktop.main import run_desktop

setup_logging()
run_desktop(host="127.0.0.1")
