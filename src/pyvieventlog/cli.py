#!/usr/bin/env python3
"""
Command-line interface for consumption statistics and saved preferences.
"""

import argparse
import asyncio
import logging
import sys
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from .aggregation import format_kwh, format_runtime
from .api_client import DashboardApiClient
from .charts import BREAKDOWN_SURFACE, CONSUMPTION_SURFACE, STATS_SURFACE, ChartSpec, ZoomHandler
from .config import settings
from .consumption import ConsumptionStatsController
from .device_stats import DeviceStatCard, SummaryCard
from .database import DatabaseService
from .errors import DashboardError
from .schemas import DeviceRef
from .selectors import Period
from .session import DashboardSession

logger = logging.getLogger("ViEventLog")


class TextPort:
    """ChartPort for the terminal: keeps tables and messages, skips charts."""

    def __init__(self):
        self.titles: Dict[str, str] = {}
        self.tables: Dict[str, pd.DataFrame] = {}
        self.messages: Dict[str, str] = {}

    def render(self, spec: ChartSpec) -> None:
        self.titles[spec.surface] = spec.title
        self.messages.pop(spec.surface, None)

    def render_table(self, surface: str, frame: pd.DataFrame) -> None:
        self.tables[surface] = frame

    def show_message(self, surface: str, message: str) -> None:
        self.messages[surface] = message

    def clear(self, surface: str) -> None:
        for store in (self.titles, self.tables, self.messages):
            store.pop(surface, None)

    def dispatch_zoom(self, start: float, end: float) -> None:
        pass

    def on_zoom_event(self, handler: ZoomHandler) -> None:
        pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ViEventLog dashboard CLI")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    stats_parser = subparsers.add_parser("stats", help="Show consumption statistics")
    stats_parser.add_argument(
        "--period",
        choices=[p.value for p in Period],
        default=settings.default_period,
        help="Preset period (default: from settings)",
    )
    stats_parser.add_argument("--from", dest="date_from", type=date.fromisoformat, help="First day (YYYY-MM-DD)")
    stats_parser.add_argument("--to", dest="date_to", type=date.fromisoformat, help="Last day (YYYY-MM-DD)")
    stats_parser.add_argument("--installation", default=settings.installation_id, help="Installation ID")
    stats_parser.add_argument("--gateway", default=settings.gateway_serial, help="Gateway serial")
    stats_parser.add_argument("--device", default=settings.device_id, help="Device ID")
    stats_parser.add_argument("--api", default=settings.api_base_url, help="Backend base URL")

    fields_parser = subparsers.add_parser("fields", help="Manage the saved chart field selection")
    fields_parser.add_argument("action", choices=["show", "reset"])
    fields_parser.add_argument(
        "--db", help="Path to SQLite database (default: from settings)", default=None
    )

    dashboard_parser = subparsers.add_parser("dashboard", help="Start the Streamlit dashboard")
    dashboard_parser.add_argument("--port", type=int, default=None, help="Streamlit port")

    return parser


def format_summary(controller: ConsumptionStatsController) -> List[str]:
    metrics = controller.metrics
    return [
        f"Electricity:   {format_kwh(metrics.electricity_kwh)} "
        f"(~{metrics.cost:.2f} EUR at {metrics.unit_price:.2f} EUR/kWh)",
        f"Heat produced: {format_kwh(metrics.thermal_kwh)}",
        f"Average COP:   {metrics.avg_cop:.2f} ({metrics.cop_band.value})",
        f"Efficiency:    {metrics.efficiency:.2f}x",
        f"Runtime:       {format_runtime(metrics.runtime_hours)}",
        f"Data points:   {metrics.samples}",
    ]


def format_device_statistics(cards: List[DeviceStatCard]) -> List[str]:
    """Period summaries reported by the device itself."""
    lines = []
    for card in cards:
        if not isinstance(card, SummaryCard):
            continue
        lines.append(card.title)
        for entry in card.entries:
            line = f"  {entry.label:<8} {entry.total_power:8.1f} kWh electricity {entry.total_heat:8.1f} kWh heat"
            if entry.cop is not None:
                line += f"  COP {entry.cop:.2f}"
            lines.append(line)
    return lines


async def run_stats(args, transport=None) -> int:
    device = DeviceRef(
        installation_id=args.installation, gateway_serial=args.gateway, device_id=args.device
    )
    if not device.installation_id:
        logger.error("No installation ID given (--installation or INSTALLATION_ID)")
        return 1

    client = DashboardApiClient(base_url=args.api, transport=transport)
    session = DashboardSession(device=device)
    try:
        session.set_device_settings(device, await client.get_device_settings(device))
    except DashboardError as e:
        logger.warning(f"Using default device settings: {e}")

    port = TextPort()
    controller = ConsumptionStatsController(client, session, port)
    if args.date_from:
        ok = await controller.select_date_range(args.date_from, args.date_to)
    else:
        ok = await controller.select_period(args.period)

    if not ok:
        print(controller.error)
        return 1

    print(port.titles.get(CONSUMPTION_SURFACE) or controller.aggregator.title_for(controller.selector))
    for line in format_summary(controller):
        print(line)
    print()
    if BREAKDOWN_SURFACE in port.messages:
        print(port.messages[BREAKDOWN_SURFACE])
    elif BREAKDOWN_SURFACE in port.tables:
        print(port.tables[BREAKDOWN_SURFACE].to_string(index=False))
    if STATS_SURFACE in port.messages:
        print(port.messages[STATS_SURFACE])

    device_lines = format_device_statistics(await controller.load_device_statistics())
    if device_lines:
        print()
        for line in device_lines:
            print(line)
    return 0


def run_fields(args) -> int:
    db = DatabaseService(args.db)
    if args.action == "show":
        saved = db.load_setting(settings.field_storage_key)
        if not saved:
            print("No saved field selection")
        else:
            for field in saved:
                print(field)
    else:
        db.remove_setting(settings.field_storage_key)
        print("Saved field selection removed")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=settings.log_level,
        stream=sys.stderr,
    )
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "stats":
        return asyncio.run(run_stats(args))
    if args.command == "fields":
        return run_fields(args)
    if args.command == "dashboard":
        from .run_streamlit import main as run_streamlit

        return run_streamlit(args.port)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
