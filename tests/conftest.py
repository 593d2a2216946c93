"""
Shared fixtures and record builders for journal tests.

Trade lists are built newest first, matching the repository's storage order.
SQLite files live under pytest's ``tmp_path``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from trading_journal.journal.journal_models import TradeRecord
from trading_journal.journal.journal_repository import TradeRepository
from trading_journal.journal.journal_store import KeyValueStore, TradeStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_raw_trade(**overrides: Any) -> dict[str, Any]:
    """Current-schema JSON record; override any key by its JSON name."""
    raw = {
        "id": "t-1",
        "timestamp": NOW.isoformat(),
        "asset": "WINFUT",
        "operationType": "buy",
        "setup": "breakout",
        "trend": "with_trend_filter",
        "location": "near_filter",
        "timeFrame": "M5",
        "trailingStopUsed": "false",
        "result": "gain",
        "outcome": "1:1",
        "screenshot": None,
        "comment": "",
    }
    raw.update(overrides)
    if "outcome" in overrides and "result" not in overrides:
        raw["result"] = "loss" if overrides["outcome"] == "-1" else "gain"
    return raw


def make_trade(**overrides: Any) -> TradeRecord:
    return TradeRecord.from_dict(make_raw_trade(**overrides))


def make_history(outcomes: list[str], start: datetime = NOW, **common: Any) -> list[TradeRecord]:
    """One trade per outcome, newest first, one hour apart."""
    return [
        make_trade(id=f"t-{i}", timestamp=(start - timedelta(hours=i)).isoformat(),
                   outcome=outcome, **common)
        for i, outcome in enumerate(outcomes)
    ]


@pytest.fixture
def kv_store(tmp_path) -> KeyValueStore:
    store = KeyValueStore(db_path=str(tmp_path / "journal.db"))
    yield store
    store.close()


@pytest.fixture
def trade_store(kv_store) -> TradeStore:
    return TradeStore(kv_store, key="tradingJournalTrades")


@pytest.fixture
def repository(trade_store) -> TradeRepository:
    return TradeRepository.open(trade_store)


@pytest.fixture
def new_trade_fields() -> dict[str, Any]:
    """Form payload for ``add`` (no id / timestamp)."""
    return {
        "asset": "winfut",
        "operationType": "sell",
        "setup": "pullback",
        "trend": "against_trend_filter",
        "location": "far_from_filter",
        "timeFrame": "M15",
        "trailingStopUsed": "true",
        "outcome": "2:1",
        "comment": "clean pullback to the filter",
    }
