#!/usr/bin/env python3
"""
PyViEventLog - consumption and temperature dashboard for Viessmann heat pumps
"""

import argparse
import logging
import os

from pyvieventlog import settings
from pyvieventlog.run_streamlit import main as run_streamlit

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=settings.log_level
)
logger = logging.getLogger("ViEventLog")


def main():
    """Main entry point for the application"""
    parser = argparse.ArgumentParser(description="ViEventLog - heat pump dashboard")
    parser.add_argument("--port", type=int, default=None, help="Streamlit port")
    parser.add_argument("--api", default=None, help="Backend base URL")
    args = parser.parse_args()

    if args.api:
        # the dashboard runs in a Streamlit subprocess and reads its settings from the environment
        os.environ["API_BASE_URL"] = args.api
        settings.api_base_url = args.api

    logger.info(f"Using backend at {settings.api_base_url}")
    logger.info("Starting Streamlit dashboard")
    return run_streamlit(args.port)


if __name__ == "__main__":
    raise SystemExit(main())
