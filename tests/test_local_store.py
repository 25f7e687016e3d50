"""
Tests for the single-slot local entry cache.
"""
import json
import sqlite3

import pytest
from conftest import T0

from shared import db_helpers
from shared.models import ShiftEntry


class TestLocalEntryStore:
    def test_empty_slot_loads_none(self, local_store):
        assert local_store.load() is None

    def test_save_then_load(self, local_store):
        entry = ShiftEntry(id="abc", swap_in=T0, synced=True)
        local_store.save(entry)

        loaded = local_store.load()
        assert loaded.id == "abc"
        assert loaded.swap_in == T0
        assert loaded.swap_out is None
        assert loaded.synced is True
        assert loaded.swap_out_synced is False

    def test_save_overwrites_single_slot(self, local_store):
        local_store.save(ShiftEntry(id="first", swap_in=T0))
        local_store.save(ShiftEntry(id="second", swap_in=T0))

        assert local_store.load().id == "second"
        conn = db_helpers.get_connection()
        try:
            count = conn.execute(
                "SELECT COUNT(*) FROM settings WHERE key = ?", (db_helpers.LOCAL_ENTRY_SLOT,)
            ).fetchone()[0]
        finally:
            conn.close()
        assert count == 1

    def test_clear(self, local_store):
        local_store.save(ShiftEntry(swap_in=T0))
        local_store.clear()
        assert local_store.load() is None

    def test_clear_empty_slot_is_fine(self, local_store):
        local_store.clear()
        assert local_store.load() is None

    def test_survives_new_store_instance(self, local_store):
        local_store.save(ShiftEntry(swap_in=T0))
        from client.local_store import LocalEntryStore
        assert LocalEntryStore().load().swap_in == T0

    def test_slot_uses_json_encoding(self, local_store):
        local_store.save(ShiftEntry(id="abc", swap_in=T0))
        raw = json.loads(db_helpers.get_setting(db_helpers.LOCAL_ENTRY_SLOT))
        assert raw == {
            "id": "abc",
            "swapIn": "2026-10-17T14:00:00+00:00",
            "swapOut": None,
            "synced": False,
            "swapOutSynced": False,
        }


class TestMalformedLocalData:
    def _write_raw(self, value):
        db_helpers.init_database()
        db_helpers.set_setting(db_helpers.LOCAL_ENTRY_SLOT, value)

    def test_corrupt_json_is_absence(self, local_store):
        self._write_raw("{not json")
        assert local_store.load() is None

    def test_non_object_is_absence(self, local_store):
        self._write_raw("[1, 2, 3]")
        assert local_store.load() is None

    def test_bad_instant_is_absence(self, local_store):
        self._write_raw(json.dumps({"swapIn": "yesterday-ish"}))
        assert local_store.load() is None

    def test_wrong_type_is_absence(self, local_store):
        self._write_raw(json.dumps({"swapIn": 12345}))
        assert local_store.load() is None

    def test_read_helper_raises(self, local_store):
        self._write_raw("garbage")
        with pytest.raises(db_helpers.MalformedLocalData):
            db_helpers.read_local_entry()


class TestBestEffortWrites:
    def test_save_failure_is_swallowed(self, local_store, monkeypatch):
        def broken(entry):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(db_helpers, "write_local_entry", broken)
        local_store.save(ShiftEntry(swap_in=T0))  # does not raise

    def test_clear_failure_is_swallowed(self, local_store, monkeypatch):
        def broken():
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(db_helpers, "remove_local_entry", broken)
        local_store.clear()
