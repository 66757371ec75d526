import pytest

from pyvieventlog.fields import (
    FIELD_CATEGORIES,
    FIELD_STYLES,
    STATUS_AXIS,
    FieldSelectionStore,
    available_fields,
    default_fields,
    field_label,
    series_name,
)
from pyvieventlog.schemas import Snapshot
from tests.conftest import snapshot_rows


class MemoryStorage:
    def __init__(self, saved=None):
        self.data = {} if saved is None else {"vieventlog_graphic_fields": saved}

    def save_setting(self, key, value):
        self.data[key] = value

    def load_setting(self, key):
        return self.data.get(key)

    def remove_setting(self, key):
        self.data.pop(key, None)


class BrokenStorage(MemoryStorage):
    def load_setting(self, key):
        raise ValueError("corrupt")


def snapshots(**fields):
    return [Snapshot.model_validate(row) for row in snapshot_rows(**fields)]


def test_available_fields_need_a_non_null_value():
    batch = snapshots(outside_temp=[None, 1.0, None, None], dhw_temp=None, compressor_active=False)
    assert available_fields(batch) == {"outside_temp", "compressor_active"}


def test_identity_keys_are_not_metrics():
    snapshot = Snapshot.model_validate(snapshot_rows(count=1, outside_temp=3.5)[0])
    assert set(snapshot.values) == {"outside_temp"}
    assert snapshot.get("outside_temp") == 3.5
    assert snapshot.get("missing") is None


def test_defaults_without_buffer():
    selected = default_fields({"outside_temp", "dhw_temp", "buffer_temp_top"})
    assert selected == ["outside_temp", "dhw_temp"]


def test_legacy_fallback_only_without_modern_supply():
    available = {"outside_temp", "primary_supply_temp", "secondary_supply_temp"}
    assert default_fields(available) == ["outside_temp", "primary_supply_temp"]
    assert default_fields(available, has_hot_water_buffer=True) == ["outside_temp", "secondary_supply_temp"]

    available.add("heating_circuit_0_supply_temp")
    assert "primary_supply_temp" not in default_fields(available)


def test_buffer_bundle():
    available = {"hp_secondary_circuit_supply_temp", "heating_circuit_0_supply_temp", "buffer_temp"}
    assert default_fields(available, True) == ["hp_secondary_circuit_supply_temp", "buffer_temp"]
    assert default_fields(available, False) == ["heating_circuit_0_supply_temp", "buffer_temp"]


def test_saved_selection_is_validated():
    store = FieldSelectionStore(MemoryStorage(["dhw_temp", "nonexistent"]))
    store.update_available(snapshots(outside_temp=1.0, dhw_temp=50.0))
    assert store.selected == ["dhw_temp"]


def test_all_invalid_saved_selection_keeps_defaults():
    store = FieldSelectionStore(MemoryStorage(["nonexistent"]))
    store.update_available(snapshots(outside_temp=1.0, dhw_temp=50.0))
    assert store.selected == ["outside_temp", "dhw_temp"]


def test_corrupt_saved_selection_is_ignored():
    for storage in (MemoryStorage("not a list"), MemoryStorage([]), BrokenStorage()):
        store = FieldSelectionStore(storage)
        store.update_available(snapshots(outside_temp=1.0))
        assert store.selected == ["outside_temp"]


def test_saved_selection_merged_once_per_session():
    storage = MemoryStorage(["dhw_temp"])
    store = FieldSelectionStore(storage)
    batch = snapshots(outside_temp=1.0, dhw_temp=50.0)
    store.update_available(batch)
    assert store.selected == ["dhw_temp"]

    store.toggle("dhw_temp")
    assert len(store) == 0
    store.update_available(batch)
    # defaults come back, the saved list is not merged a second time
    assert store.selected == ["outside_temp", "dhw_temp"]


def test_toggle_save_and_reset():
    storage = MemoryStorage()
    store = FieldSelectionStore(storage)
    store.update_available(snapshots(outside_temp=1.0, dhw_temp=50.0, compressor_active=True))

    assert store.toggle("compressor_active") is True
    assert "compressor_active" in store
    assert store.toggle("outside_temp") is False
    store.save()
    assert storage.data["vieventlog_graphic_fields"] == ["dhw_temp", "compressor_active"]

    store.reset()
    assert store.selected == []
    assert "vieventlog_graphic_fields" not in storage.data


def test_save_without_storage_fails():
    with pytest.raises(RuntimeError):
        FieldSelectionStore().save()


def test_categories_only_list_available_fields():
    store = FieldSelectionStore()
    store.update_available(snapshots(outside_temp=1.0, compressor_speed=40.0))
    assert store.categories() == {"Temperatures": ["outside_temp"], "Compressor": ["compressor_speed"]}


def test_labels_fall_back_to_field_name():
    assert field_label("outside_temp") == "Outside temperature"
    assert series_name("heating_circuit_0_delta_t") == "ΔT"
    assert field_label("mystery") == "mystery"


def test_every_categorized_field_has_a_style():
    categorized = {f for fields in FIELD_CATEGORIES.values() for f in fields}
    assert categorized - set(FIELD_STYLES) == set()
    assert FIELD_STYLES["secondary_heat_generator_status"].axis == STATUS_AXIS
