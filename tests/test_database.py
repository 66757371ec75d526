from pyvieventlog.database import DatabaseService
from pyvieventlog.fields import FieldSelectionStore
from pyvieventlog.models import StoredSetting
from pyvieventlog.schemas import Snapshot
from tests.conftest import snapshot_rows


def test_round_trip_and_overwrite(db):
    db.save_setting("fields", ["outside_temp"])
    db.save_setting("fields", ["dhw_temp", "return_temp"])
    assert db.load_setting("fields") == ["dhw_temp", "return_temp"]

    with db.get_session() as session:
        assert session.query(StoredSetting).count() == 1


def test_missing_key_and_remove(db):
    assert db.load_setting("nothing") is None
    db.save_setting("fields", [])
    db.remove_setting("fields")
    db.remove_setting("fields")
    assert db.load_setting("fields") is None


def test_persists_across_instances(tmp_path):
    path = str(tmp_path / "nested" / "prefs.db")
    DatabaseService(path).save_setting("key", {"a": 1})
    assert DatabaseService(path).load_setting("key") == {"a": 1}


def test_field_selection_survives_restart(db):
    batch = [Snapshot.model_validate(r) for r in snapshot_rows(outside_temp=1.0, dhw_temp=50.0)]

    store = FieldSelectionStore(db, storage_key="fields")
    store.update_available(batch)
    store.toggle("outside_temp")
    store.save()

    restored = FieldSelectionStore(db, storage_key="fields")
    restored.update_available(batch)
    assert restored.selected == ["dhw_temp"]
