"""Persistence gateway: key-value slot, load/save round-trip, migration, failure handling."""

import json
import sqlite3
import threading

import pytest
from pydantic import ValidationError

from trading_journal.journal.journal_models import TradeRecord, TradeResult, TrailingStopUsed
from trading_journal.journal.journal_store import (
    CORRUPT_SUFFIX,
    TradeStore,
    export_json,
    migrate_record,
    parse_import,
)
from trading_journal.utils.exceptions import DeserializationError, StorageError

from conftest import make_history, make_raw_trade


class TestKeyValueStore:

    def test_missing_key_returns_none(self, kv_store):
        assert kv_store.get("nope") is None

    def test_set_overwrites(self, kv_store):
        kv_store.set("k", "one")
        kv_store.set("k", "two")
        assert kv_store.get("k") == "two"
        assert kv_store.keys() == ["k"]

    def test_delete(self, kv_store):
        kv_store.set("k", "v")
        kv_store.delete("k")
        assert kv_store.get("k") is None

    def test_close_releases_connections_of_other_threads(self, kv_store):
        worker = threading.Thread(target=kv_store.set, args=("k", "v"))
        worker.start()
        worker.join()
        assert kv_store.open_connections == 2

        kv_store.close()
        assert kv_store.open_connections == 0
        assert kv_store.get("k") == "v"


class TestMigration:

    def test_legacy_record_gets_result_and_trailing_stop(self):
        raw = make_raw_trade(outcome="-1")
        del raw["result"], raw["trailingStopUsed"]
        trade = migrate_record(raw)
        assert trade.result is TradeResult.LOSS
        assert trade.trailing_stop_used is TrailingStopUsed.FALSE

    def test_missing_result_on_win_becomes_gain(self):
        raw = make_raw_trade(outcome="3:1")
        del raw["result"]
        assert migrate_record(raw).result is TradeResult.GAIN

    def test_current_record_passes_through(self):
        raw = make_raw_trade(outcome="-1", result="gain", trailingStopUsed="true")
        trade = migrate_record(raw)
        assert trade.result is TradeResult.GAIN
        assert trade.trailing_stop_used is TrailingStopUsed.TRUE
        assert trade == TradeRecord.from_dict(raw)

    def test_legacy_date_key(self):
        raw = make_raw_trade()
        raw["date"] = raw.pop("timestamp")
        assert migrate_record(raw).timestamp.isoformat() == raw["date"]

    @pytest.mark.parametrize("legacy, expected", [("B/B", TrailingStopUsed.TRUE), ("T/F", TrailingStopUsed.FALSE)])
    def test_legacy_trailing_stop_tag(self, legacy, expected):
        raw = make_raw_trade()
        del raw["trailingStopUsed"]
        raw["trailingStop"] = legacy
        trade = migrate_record(raw)
        assert trade.trailing_stop_used is expected
        assert "trailingStop" not in trade.to_dict()

    def test_unknown_legacy_trailing_stop_tag_raises(self):
        raw = make_raw_trade()
        del raw["trailingStopUsed"]
        raw["trailingStop"] = "X/Y"
        with pytest.raises(ValidationError):
            migrate_record(raw)

    @pytest.mark.parametrize("drop", [(), ("result",), ("trailingStopUsed",), ("result", "trailingStopUsed")])
    def test_idempotent(self, drop):
        raw = make_raw_trade(outcome="2:1")
        for key in drop:
            del raw[key]
        once = migrate_record(raw)
        assert migrate_record(once.to_dict()) == once
        assert migrate_record(once) is once

    def test_does_not_mutate_input(self):
        raw = make_raw_trade()
        del raw["result"]
        snapshot = dict(raw)
        migrate_record(raw)
        assert raw == snapshot

    def test_invalid_record_raises(self):
        with pytest.raises(ValidationError):
            migrate_record(make_raw_trade(outcome="5:1"))

    def test_non_object_raises(self):
        with pytest.raises(TypeError):
            migrate_record(["not", "a", "record"])


class TestTradeStore:

    def test_empty_slot_loads_empty(self, trade_store):
        assert trade_store.load() == []

    def test_save_then_load_round_trip(self, trade_store):
        trades = make_history(["1:1", "-1", "2:1"], screenshot="aW1n", comment="ok")
        assert trade_store.save(trades) is True
        assert trade_store.load() == trades

    def test_save_overwrites_previous_contents(self, trade_store):
        trade_store.save(make_history(["1:1", "-1"]))
        trade_store.save(make_history(["4:1"]))
        assert [t.outcome.value for t in trade_store.load()] == ["4:1"]

    def test_stored_layout_is_json_array(self, trade_store, kv_store):
        trade_store.save(make_history(["1:1"]))
        stored = json.loads(kv_store.get(trade_store.key))
        assert isinstance(stored, list)
        assert stored[0]["operationType"] == "buy"
        assert stored[0]["timeFrame"] == "M5"

    def test_load_migrates_legacy_records(self, trade_store, kv_store):
        legacy = make_raw_trade(outcome="-1")
        del legacy["result"], legacy["trailingStopUsed"]
        kv_store.set(trade_store.key, json.dumps([legacy]))
        [trade] = trade_store.load()
        assert trade.result is TradeResult.LOSS
        assert trade.trailing_stop_used is TrailingStopUsed.FALSE

    @pytest.mark.parametrize("stored", [
        "{not json",
        json.dumps({"id": "t-1"}),
        json.dumps([make_raw_trade(), make_raw_trade(id="t-2", setup="bogus")]),
        json.dumps(["string element"]),
    ])
    def test_unreadable_slot_loads_empty_and_is_preserved(self, trade_store, kv_store, stored):
        kv_store.set(trade_store.key, stored)
        assert trade_store.load() == []
        assert kv_store.get(trade_store.key + CORRUPT_SUFFIX) == stored

    def test_write_failure_is_reported_not_raised(self, trade_store, kv_store, monkeypatch):
        def fail(key, value):
            raise StorageError("disk full")

        monkeypatch.setattr(kv_store, "set", fail)
        assert trade_store.save(make_history(["1:1"])) is False

    def test_read_failure_raises_storage_error(self, trade_store, kv_store, monkeypatch):
        trade_store.save(make_history(["1:1"]))

        def locked(key):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(kv_store, "get", locked)
        with pytest.raises(StorageError):
            trade_store.load()
        assert trade_store.key + CORRUPT_SUFFIX not in kv_store.keys()

    def test_separate_keys_are_isolated(self, kv_store):
        a = TradeStore(kv_store, key="a")
        b = TradeStore(kv_store, key="b")
        a.save(make_history(["1:1"]))
        assert b.load() == []


class TestExportImportFormat:

    def test_export_is_pretty_printed_array(self):
        trades = make_history(["1:1", "-1"])
        text = export_json(trades)
        assert text.startswith("[\n  {")
        assert [TradeRecord.from_dict(d) for d in json.loads(text)] == trades

    def test_parse_import_valid(self):
        assert parse_import('[{"id": "a", "asset": "WIN"}]') == [{"id": "a", "asset": "WIN"}]

    def test_parse_import_invalid_json(self):
        with pytest.raises(DeserializationError):
            parse_import("[{oops")
