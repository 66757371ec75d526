"""
Metric catalogue and the selection of metrics shown in the temperature chart.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Set

from .config import settings
from .schemas import Snapshot

logger = logging.getLogger("ViEventLog")

# Axis indices of the temperature chart
TEMPERATURE_AXIS = 0
STATUS_AXIS = 1
POWER_AXIS = 2


@dataclass(frozen=True)
class FieldStyle:
    label: str
    short_name: str
    axis: int
    color: str
    step: bool = False
    dashed: bool = False
    opacity: float = 1.0


def _temp(label, short_name, color, **kwargs) -> FieldStyle:
    return FieldStyle(label, short_name, TEMPERATURE_AXIS, color, **kwargs)


def _status(label, short_name, color) -> FieldStyle:
    return FieldStyle(label, short_name, STATUS_AXIS, color, step=True)


def _power(label, short_name, color) -> FieldStyle:
    return FieldStyle(label, short_name, POWER_AXIS, color)


FIELD_STYLES: Dict[str, FieldStyle] = {
    "outside_temp": _temp("Outside temperature", "Outside", "#4285f4"),
    "calculated_outside_temp": _temp("Outside temp. (calculated)", "Outside (calc.)", "#6fa8dc"),
    "hp_primary_circuit_supply_temp": _temp("HP primary circuit supply (air inlet)", "HP primary supply", "#e74c3c"),
    "hp_secondary_circuit_supply_temp": _temp("HP secondary circuit supply", "HP secondary supply", "#9b59b6"),
    "heating_circuit_0_supply_temp": _temp("Heating circuit 0 supply", "HC0 supply", "#e67e22"),
    "heating_circuit_1_supply_temp": _temp("Heating circuit 1 supply", "HC1 supply", "#16a085"),
    "heating_circuit_2_supply_temp": _temp("Heating circuit 2 supply", "HC2 supply", "#2980b9"),
    "heating_circuit_3_supply_temp": _temp("Heating circuit 3 supply", "HC3 supply", "#8e44ad"),
    "heating_circuit_0_delta_t": _temp("Spread (ΔT)", "ΔT", "#f39c12", dashed=True),
    "heating_circuit_1_delta_t": _temp("Heating circuit 1 spread (ΔT)", "HC1 ΔT", "#1abc9c", dashed=True),
    "heating_circuit_2_delta_t": _temp("Heating circuit 2 spread (ΔT)", "HC2 ΔT", "#3498db", dashed=True),
    "heating_circuit_3_delta_t": _temp("Heating circuit 3 spread (ΔT)", "HC3 ΔT", "#9b59b6", dashed=True),
    "return_temp": _temp("Common return", "Return", "#34a853"),
    "dhw_temp": _temp("Hot water", "Hot water", "#fbbc04"),
    "dhw_cylinder_middle_temp": _temp("Hot water (middle)", "HW middle", "#fdd663"),
    "boiler_temp": _temp("Boiler", "Boiler", "#ff5722"),
    "buffer_temp": _temp("Buffer", "Buffer", "#9c27b0"),
    "buffer_temp_top": _temp("Buffer (top)", "Buffer (top)", "#ba68c8"),
    # legacy fields, superseded by the circuit specific ones above
    "supply_temp": _temp("Supply (legacy)", "Supply (L)", "#999999", opacity=0.5),
    "primary_supply_temp": _temp("Indoor unit supply (legacy)", "IDU supply (L)", "#ea4335", opacity=0.5),
    "secondary_supply_temp": _temp("Outdoor unit secondary supply (legacy)", "ODU supply (L)", "#ff6f00", opacity=0.5),
    "primary_return_temp": _temp("Primary return (legacy)", "Primary RT (L)", "#57bb8a", opacity=0.5),
    "secondary_return_temp": _temp("Secondary return (legacy)", "Secondary RT (L)", "#7cb342", opacity=0.5),
    "compressor_oil_temp": _temp("Compressor oil temp.", "Oil temp.", "#795548"),
    "compressor_motor_temp": _temp("Compressor motor temp.", "Motor temp.", "#8d6e63"),
    "compressor_inlet_temp": _temp("Compressor inlet temp.", "Inlet temp.", "#0288d1"),
    "compressor_outlet_temp": _temp("Compressor outlet temp.", "Outlet temp.", "#d32f2f"),
    "four_way_valve_current": _temp("4-way valve (actual)", "Valve actual", "#57bb8a"),
    "four_way_valve_target": _temp("4-way valve (target)", "Valve target", "#7cb342"),
    "compressor_active": _status("Compressor active", "Compressor", "#f4b400"),
    "circulation_pump_active": _status("Circulation pump", "Circulation pump", "#0f9d58"),
    "dhw_pump_active": _status("Hot water pump", "HW pump", "#4285f4"),
    "internal_pump_active": _status("Internal pump", "Int. pump", "#9c27b0"),
    "secondary_heat_generator_status": _status("Secondary heat generator", "2nd heat gen.", "#c62828"),
    "compressor_speed": _power("Compressor speed", "Speed", "#ff9800"),
    "compressor_current": _power("Compressor current", "Current", "#3f51b5"),
    "compressor_pressure": _power("Compressor pressure", "Pressure", "#00bcd4"),
    "compressor_hours": _power("Operating hours", "Hours", "#607d8b"),
    "compressor_starts": _power("Compressor starts", "Starts", "#7cb342"),
    "compressor_power": _power("Power draw", "Power", "#e91e63"),
    "volumetric_flow": _power("Volumetric flow", "Flow", "#2196f3"),
    "thermal_power": _power("Thermal power", "Thermal power", "#ff5722"),
    "cop": _power("Momentary COP", "COP", "#4caf50"),
    "burner_modulation": _power("Burner modulation", "Burner mod.", "#ff6f00"),
}

FIELD_CATEGORIES: Dict[str, List[str]] = {
    "Temperatures": [
        "outside_temp", "calculated_outside_temp", "dhw_temp", "dhw_cylinder_middle_temp",
        "boiler_temp", "buffer_temp", "buffer_temp_top",
    ],
    "Circuits": [
        "supply_temp", "return_temp",
        "hp_primary_circuit_supply_temp", "hp_secondary_circuit_supply_temp",
        "heating_circuit_0_supply_temp", "heating_circuit_1_supply_temp",
        "heating_circuit_2_supply_temp", "heating_circuit_3_supply_temp",
        "heating_circuit_0_delta_t", "heating_circuit_1_delta_t",
        "heating_circuit_2_delta_t", "heating_circuit_3_delta_t",
        "primary_supply_temp", "secondary_supply_temp",
        "primary_return_temp", "secondary_return_temp",
    ],
    "Compressor": [
        "compressor_active", "compressor_speed", "compressor_current", "compressor_pressure",
        "compressor_oil_temp", "compressor_motor_temp", "compressor_inlet_temp",
        "compressor_outlet_temp", "compressor_hours", "compressor_starts", "compressor_power",
    ],
    "Info": [
        "circulation_pump_active", "dhw_pump_active", "internal_pump_active",
        "four_way_valve_target", "four_way_valve_current",
    ],
    "Energy": ["volumetric_flow", "thermal_power", "cop"],
    "Operation": ["burner_modulation", "secondary_heat_generator_status"],
}

BUFFER_DEFAULT_FIELDS = [
    "outside_temp",
    "hp_secondary_circuit_supply_temp",
    "heating_circuit_0_delta_t",
    "return_temp",
    "dhw_temp",
    "buffer_temp",
]
BUFFER_FALLBACK_FIELDS = ["secondary_supply_temp"]

CIRCUIT_DEFAULT_FIELDS = [
    "outside_temp",
    "heating_circuit_0_supply_temp",
    "heating_circuit_0_delta_t",
    "return_temp",
    "dhw_temp",
    "buffer_temp",
]
CIRCUIT_FALLBACK_FIELDS = ["primary_supply_temp"]

# a legacy fallback is only used when none of these got selected
MODERN_SUPPLY_FIELDS = ("hp_secondary_circuit_supply_temp", "heating_circuit_0_supply_temp")


def field_label(field: str) -> str:
    style = FIELD_STYLES.get(field)
    return style.label if style else field


def series_name(field: str) -> str:
    style = FIELD_STYLES.get(field)
    return style.short_name if style else field


def available_fields(snapshots: Iterable[Snapshot]) -> Set[str]:
    """Metric names with at least one non-null value in the batch."""
    found = set()
    for snapshot in snapshots:
        found.update(k for k, v in snapshot.values.items() if v is not None)
    return found


def default_fields(available: Set[str], has_hot_water_buffer: bool = False) -> List[str]:
    if has_hot_water_buffer:
        preferred, fallback = BUFFER_DEFAULT_FIELDS, BUFFER_FALLBACK_FIELDS
    else:
        preferred, fallback = CIRCUIT_DEFAULT_FIELDS, CIRCUIT_FALLBACK_FIELDS

    selected = [f for f in preferred if f in available]
    if not any(f in selected for f in MODERN_SUPPLY_FIELDS):
        selected.extend(f for f in fallback if f in available)
    return selected


class SettingsStorage(Protocol):
    def save_setting(self, key: str, value) -> None: ...

    def load_setting(self, key: str): ...

    def remove_setting(self, key: str) -> None: ...


class FieldSelectionStore:
    """Which metrics are plotted.

    Defaults are derived on the first load with an empty selection; a saved
    selection is merged in once per session on top of them.
    """

    def __init__(self, storage: Optional[SettingsStorage] = None, storage_key: Optional[str] = None):
        self.storage = storage
        self.storage_key = storage_key or settings.field_storage_key
        self.available: Set[str] = set()
        self._selected: Dict[str, None] = {}
        self._saved_loaded = False

    @property
    def selected(self) -> List[str]:
        return list(self._selected)

    def is_selected(self, field: str) -> bool:
        return field in self._selected

    def __contains__(self, field: str) -> bool:
        return self.is_selected(field)

    def __len__(self) -> int:
        return len(self._selected)

    def _replace(self, fields: Iterable[str]) -> None:
        self._selected = dict.fromkeys(fields)

    def update_available(self, snapshots: Iterable[Snapshot], has_hot_water_buffer: bool = False) -> Set[str]:
        self.available = available_fields(snapshots)

        if not self._selected:
            self._replace(default_fields(self.available, has_hot_water_buffer))
            if not self._saved_loaded:
                self._saved_loaded = True
                self._merge_saved()
        return self.available

    def _merge_saved(self) -> None:
        if self.storage is None:
            return
        try:
            saved = self.storage.load_setting(self.storage_key)
        except Exception as e:
            logger.error(f"Failed to load saved field selection: {e}")
            return

        if not isinstance(saved, list) or not saved:
            return
        valid = [f for f in saved if isinstance(f, str) and f in self.available]
        if not valid:
            logger.info("Saved field selection has no available fields, keeping defaults")
            return
        self._replace(valid)
        logger.info(f"Loaded saved field selection: {', '.join(valid)}")

    def toggle(self, field: str) -> bool:
        """Flip ``field`` and return whether it is selected afterwards."""
        if field in self._selected:
            del self._selected[field]
            return False
        self._selected[field] = None
        return True

    def save(self) -> None:
        if self.storage is None:
            raise RuntimeError("No storage configured for field selection")
        self.storage.save_setting(self.storage_key, self.selected)
        logger.info(f"Saved field selection ({len(self._selected)} fields)")

    def reset(self) -> None:
        """Back to defaults on the next load; forgets the saved selection."""
        self._selected.clear()
        if self.storage is not None:
            self.storage.remove_setting(self.storage_key)

    def clear(self) -> None:
        """Forget the in-memory selection only, e.g. when the device changes."""
        self._selected.clear()
        self.available = set()
        self._saved_loaded = False

    def categories(self) -> Dict[str, List[str]]:
        """Available fields grouped by category, empty categories left out."""
        grouped = {}
        for category, fields in FIELD_CATEGORIES.items():
            present = [f for f in fields if f in self.available]
            if present:
                grouped[category] = present
        return grouped
