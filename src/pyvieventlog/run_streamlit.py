#!/usr/bin/env python3
"""
Runner script for the ViEventLog Streamlit app.
"""

import importlib.util
import logging
import subprocess
import sys
from pathlib import Path

from pyvieventlog.config import settings

logger = logging.getLogger("ViEventLog")


def find_app_path() -> str:
    module_spec = importlib.util.find_spec("pyvieventlog.streamlit_app")
    if module_spec and module_spec.origin:
        return module_spec.origin
    return str(Path(__file__).resolve().parent / "streamlit_app.py")


def build_command(app_path: str, port: int) -> list:
    return [
        "streamlit",
        "run",
        app_path,
        "--server.port",
        str(port),
        "--server.address",
        "0.0.0.0",
        "--browser.serverAddress",
        "localhost",
        "--theme.base",
        "dark",
    ]


def main(port=None):
    """Run the Streamlit app"""
    app_path = find_app_path()
    logger.info(f"Using Streamlit app file: {app_path}")

    cmd = build_command(app_path, port or settings.streamlit_port)
    logger.info(f"Starting Streamlit app: {' '.join(cmd)}")

    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info("Streamlit app stopped by user")
    except (subprocess.CalledProcessError, OSError) as e:
        logger.error(f"Failed to start Streamlit: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
