"""
Streamlit app for ViEventLog.
Shows the consumption tile and the temperature chart of one heat pump.
"""

import asyncio
import logging
from datetime import date, datetime

import pytz
import streamlit as st

from pyvieventlog.aggregation import format_kwh, format_runtime
from pyvieventlog.api_client import DashboardApiClient
from pyvieventlog.charts import (
    BREAKDOWN_SURFACE,
    CONSUMPTION_SURFACE,
    STATS_SURFACE,
    TEMPERATURE_SURFACE,
    AltairChartPort,
)
from pyvieventlog.config import settings
from pyvieventlog.consumption import ConsumptionStatsController, CopBand, LoadState
from pyvieventlog.database import DatabaseService
from pyvieventlog.device_stats import StatEntry, SummaryCard, SummaryEntry
from pyvieventlog.errors import DashboardError
from pyvieventlog.fields import FieldSelectionStore, field_label
from pyvieventlog.navigator import ZoomNavigator
from pyvieventlog.schemas import DeviceRef
from pyvieventlog.selectors import Period, PresetPeriod
from pyvieventlog.session import DashboardSession
from pyvieventlog.temperature import TIME_RANGES, TemperatureChartController

logger = logging.getLogger("ViEventLog")

PERIOD_BUTTONS = [
    (Period.TODAY, "Today"),
    (Period.YESTERDAY, "Yesterday"),
    (Period.WEEK, "7 days"),
    (Period.MONTH, "Month"),
    (Period.LAST_30_DAYS, "30 days"),
    (Period.YEAR, "Year"),
]

NAVIGATION_BUTTONS = [
    ("jump_left", "⏪"),
    ("pan_left", "◀"),
    ("center", "⊙"),
    ("pan_right", "▶"),
    ("jump_right", "⏩"),
    ("full", "⛶"),
]

COP_BAND_COLORS = {
    CopBand.GOOD: "#4caf50",
    CopBand.FAIR: "#fbbc04",
    CopBand.POOR: "#f44336",
    CopBand.NEUTRAL: "#999999",
}


def setup_page():
    """Configure Streamlit page settings"""
    st.set_page_config(
        page_title="ViEventLog Dashboard",
        page_icon="🔥",
        layout="wide",
        initial_sidebar_state="collapsed",
    )

    st.markdown(
        """
    <style>
    .stApp {
        background-color: #2a2a2a;
    }
    .vega-embed .marks {
        border: 1px solid #4d4d4d;
        border-radius: 25px;
        max-width: 100% ;
    }
    .stHeading {
        margin-top: 1.5rem;
    }
    .metric-label {
        font-size: 1.2rem;
        color: #CCCCCC;
        margin-bottom: 0.5rem;
    }
    .metric-container {
        background-color: #2d2d2d;
        border-radius: 16px;
        padding: 20px;
        text-align: center;
        box-shadow: 0 8px 16px rgba(0, 0, 0, 0.6);
        border: 1px solid #3d3d3d;
    }
    .block-container {
        padding-top: 1rem;
        background-color: #1a1a1a;
        padding-bottom: 1rem;
    }
    </style>
    """,
        unsafe_allow_html=True,
    )


def get_dashboard():
    """Controllers and their shared state, created once per browser session."""
    if "dashboard" not in st.session_state:
        session = DashboardSession(
            fields=FieldSelectionStore(storage=DatabaseService()),
            navigator=ZoomNavigator(),
        )
        port = AltairChartPort()
        client = DashboardApiClient()
        st.session_state["dashboard"] = {
            "session": session,
            "port": port,
            "client": client,
            "consumption": ConsumptionStatsController(client, session, port),
            "temperature": TemperatureChartController(client, session, port),
            "initialized": False,
        }
    return st.session_state["dashboard"]


async def initialize(dashboard) -> None:
    session = dashboard["session"]
    client = dashboard["client"]
    try:
        device_settings = await client.get_device_settings(session.device)
        session.set_device_settings(session.device, device_settings)
    except DashboardError as e:
        logger.warning(f"Using default device settings: {e}")

    consumption = dashboard["consumption"]
    dashboard["consumption_available"] = await consumption.is_available()
    if dashboard["consumption_available"]:
        await consumption.refresh()
    await consumption.load_device_statistics()
    await dashboard["temperature"].initialize()
    dashboard["initialized"] = True


def render_device_picker(dashboard):
    session = dashboard["session"]
    with st.sidebar:
        st.subheader("Device")
        installation_id = st.text_input("Installation", value=session.device.installation_id)
        gateway_serial = st.text_input("Gateway serial", value=session.device.gateway_serial)
        device_id = st.text_input("Device", value=session.device.device_id)

    device = DeviceRef(
        installation_id=installation_id, gateway_serial=gateway_serial, device_id=device_id
    )
    if device != session.device:
        session.switch_device(device)
        dashboard["consumption"].clear()
        dashboard["temperature"].clear()
        clear_field_widgets()
        for key in ("temperature_range", "temperature_day"):
            st.session_state.pop(key, None)
        dashboard["initialized"] = False


def show_surface(port: AltairChartPort, surface: str, table: bool = False):
    if surface in port.messages:
        st.info(port.messages[surface])
    elif table and surface in port.tables:
        st.dataframe(port.tables[surface], hide_index=True, use_container_width=True)
    elif port.charts.get(surface) is not None:
        st.altair_chart(port.charts[surface], use_container_width=True)


def metric_card(column, label, value, sublabel="", color="#e0e0e0"):
    column.markdown(
        f"""
        <div class="metric-container">
            <div class="metric-label">{label}</div>
            <div style="font-size: 2rem; font-weight: bold; color: {color}">{value}</div>
            <div>{sublabel}</div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def on_range_change(controller: ConsumptionStatsController):
    picked = st.session_state["consumption_range"]
    # a range picker reports one day until the second click
    if isinstance(picked, tuple) and len(picked) == 2:
        asyncio.run(controller.select_date_range(picked[0], picked[1]))


def render_consumption(dashboard):
    controller: ConsumptionStatsController = dashboard["consumption"]
    port = dashboard["port"]
    if not dashboard.get("consumption_available"):
        return

    st.subheader("Consumption")
    selector = controller.selector

    columns = st.columns(len(PERIOD_BUTTONS) + 1)
    for column, (period, label) in zip(columns, PERIOD_BUTTONS):
        active = isinstance(selector, PresetPeriod) and selector.period == period
        if column.button(label, key=f"period_{period.value}", type="primary" if active else "secondary"):
            asyncio.run(controller.select_period(period))
            st.session_state.pop("consumption_range", None)
            st.rerun()

    with columns[-1]:
        st.date_input(
            "Date range",
            value=(),
            format="DD.MM.YYYY",
            key="consumption_range",
            on_change=on_range_change,
            args=(controller,),
        )

    if controller.state is LoadState.ERROR:
        st.error(controller.error)
        return

    metrics = controller.metrics
    if metrics is not None:
        cards = st.columns(6)
        metric_card(
            cards[0],
            "Electricity",
            format_kwh(metrics.electricity_kwh),
            f"~{metrics.cost:.2f} € (at {metrics.unit_price:.2f} €/kWh)",
        )
        metric_card(cards[1], "Heat produced", format_kwh(metrics.thermal_kwh))
        metric_card(
            cards[2],
            "Average COP",
            f"{metrics.avg_cop:.2f}",
            color=COP_BAND_COLORS[metrics.cop_band],
        )
        metric_card(cards[3], "Runtime", format_runtime(metrics.runtime_hours))
        metric_card(
            cards[4],
            "Efficiency",
            f"{metrics.efficiency:.2f}x",
            f"{metrics.thermal_kwh:.1f} kWh heat from {metrics.electricity_kwh:.1f} kWh electricity",
        )
        metric_card(cards[5], "Data points", str(metrics.samples), "Snapshots recorded")

    chart_col, split_col = st.columns([3, 1])
    with chart_col:
        show_surface(port, CONSUMPTION_SURFACE)
    with split_col:
        show_surface(port, STATS_SURFACE)

    with st.expander("Breakdown"):
        show_surface(port, BREAKDOWN_SURFACE, table=True)


def format_stat(value, unit):
    return f"{value:.1f} {unit}" if value is not None else "-"


def render_stat_entry(entry: StatEntry, unit: str):
    parts = [("Hot water", entry.dhw), ("Heating", entry.heating), ("Cooling", entry.cooling)]
    parts = [(label, value) for label, value in parts if value is not None]
    if entry.total > 0:
        parts.append(("Total", entry.total))
    for column, (label, value) in zip(st.columns(max(len(parts), 1)), parts):
        metric_card(column, label, format_stat(value, unit))


def render_summary_entry(entry: SummaryEntry):
    columns = st.columns(4)
    metric_card(
        columns[0], "Electricity", format_stat(entry.total_power, "kWh"),
        f"Hot water {format_stat(entry.power_dhw, 'kWh')} / heating {format_stat(entry.power_heating, 'kWh')}",
    )
    metric_card(
        columns[1], "Heat produced", format_stat(entry.total_heat, "kWh"),
        f"Hot water {format_stat(entry.heat_dhw, 'kWh')} / heating {format_stat(entry.heat_heating, 'kWh')}",
    )
    if entry.cop is not None:
        metric_card(columns[2], "COP", f"{entry.cop:.2f}")
    if entry.weekly_power is not None:
        metric_card(columns[3], "Per week", format_stat(entry.weekly_power, "kWh"))


def render_device_statistics(dashboard):
    cards = dashboard["session"].device_statistics
    if not cards:
        return

    st.subheader("Device statistics")
    for card in cards:
        with st.container(border=True):
            st.markdown(f"**{card.title}**")
            if isinstance(card, SummaryCard):
                for tab, entry in zip(st.tabs([e.label for e in card.entries]), card.entries):
                    with tab:
                        render_summary_entry(entry)
                continue

            groups = list(card.groups.items())
            for group_tab, (_, entries) in zip(st.tabs([name for name, _ in groups]), groups):
                with group_tab:
                    if len(entries) == 1:
                        render_stat_entry(entries[0], card.unit)
                        continue
                    for tab, entry in zip(st.tabs([e.label for e in entries]), entries):
                        with tab:
                            render_stat_entry(entry, card.unit)


def clear_field_widgets():
    for key in [k for k in st.session_state if str(k).startswith("field_")]:
        del st.session_state[key]


def render_field_filters(controller: TemperatureChartController):
    store = controller.fields
    with st.expander("Metrics"):
        categories = store.categories()
        columns = st.columns(max(len(categories), 1))
        for column, (category, fields) in zip(columns, categories.items()):
            column.markdown(f"**{category}**")
            for field in fields:
                column.checkbox(
                    field_label(field),
                    value=store.is_selected(field),
                    key=f"field_{field}",
                    on_change=controller.toggle_field,
                    args=(field,),
                )

        save_col, reset_col, _ = st.columns([1, 1, 4])
        if save_col.button("Save selection"):
            controller.save_fields()
            st.toast("Field selection saved")
        if reset_col.button("Reset selection"):
            controller.reset_fields()
            clear_field_widgets()
            st.rerun()


def on_time_range_change(controller: TemperatureChartController):
    st.session_state["temperature_day"] = None
    asyncio.run(controller.select_time_range(st.session_state["temperature_range"]))


def on_day_change(controller: TemperatureChartController):
    day = st.session_state["temperature_day"]
    asyncio.run(controller.select_date(day if isinstance(day, date) else None))


@st.fragment(run_every=settings.temperature_refresh_seconds or None)
def render_temperature(dashboard):
    controller: TemperatureChartController = dashboard["temperature"]
    session = dashboard["session"]
    port: AltairChartPort = dashboard["port"]
    if not controller.enabled:
        return
    # the fragment reruns on its own every temperature_refresh_seconds
    asyncio.run(controller.refresh_if_due())

    st.subheader("Temperatures")
    st.session_state.setdefault(
        "temperature_range", session.time_range if session.time_range in TIME_RANGES else "24h"
    )
    st.session_state.setdefault("temperature_day", session.custom_date)

    range_col, date_col, options_col = st.columns([1, 1, 2])
    with range_col:
        st.selectbox(
            "Time range",
            TIME_RANGES,
            key="temperature_range",
            on_change=on_time_range_change,
            args=(controller,),
        )
    with date_col:
        st.date_input(
            "Specific day",
            format="DD.MM.YYYY",
            key="temperature_day",
            on_change=on_day_change,
            args=(controller,),
        )
    with options_col:
        for name, label in (
            ("smooth", "Smooth lines"),
            ("show_symbols", "Show points"),
            ("connect_nulls", "Connect gaps"),
        ):
            value = st.toggle(label, value=getattr(session.display, name))
            if value != getattr(session.display, name):
                controller.set_display_option(name, value)

    render_field_filters(controller)

    nav_columns = st.columns(len(NAVIGATION_BUTTONS))
    for column, (command, label) in zip(nav_columns, NAVIGATION_BUTTONS):
        if column.button(label, key=f"nav_{command}", use_container_width=True):
            controller.navigate(command)

    window = session.navigator.window
    zoom = st.slider(
        "Visible window (%)", 0.0, 100.0, value=(float(window.start), float(window.end)), step=0.5
    )
    if zoom != (window.start, window.end):
        port.report_gesture(*zoom)
        controller.rerender()

    show_surface(port, TEMPERATURE_SURFACE)


def main():
    """Main function for the Streamlit app"""
    setup_page()
    st.title("ViEventLog Dashboard")

    dashboard = get_dashboard()
    render_device_picker(dashboard)

    if not dashboard["session"].device.installation_id:
        st.info("Set an installation ID to load data.")
        return

    if not dashboard["initialized"]:
        asyncio.run(initialize(dashboard))

    last_update = datetime.now(pytz.timezone(settings.timezone)).strftime("%Y-%m-%d %H:%M:%S")
    st.markdown(f"<p>Last refresh: {last_update}</p>", unsafe_allow_html=True)

    render_consumption(dashboard)
    render_device_statistics(dashboard)
    render_temperature(dashboard)


if __name__ == "__main__":
    main()
