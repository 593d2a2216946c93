"""
Personal Trading Journal
========================

Discretionary trade entries, persisted as one JSON slot, with R-multiple stats.

Architecture:
  journal_models.py     : TradeRecord, enum domains, outcome → R map, import shape check
  journal_store.py      : SQLite key-value slot, load/save gateway, record migration
  journal_repository.py : Owned newest-first collection: add/update/delete/import/clear
  journal_analytics.py  : Pure statistics: win rate, cumulative R, breakdowns, weekly rollup
"""

from trading_journal.journal.journal_models import (
    OperationType,
    Setup,
    Trend,
    Location,
    TimeFrame,
    TrailingStopUsed,
    TradeResult,
    Outcome,
    OUTCOME_R_MAP,
    TradeRecord,
    derive_result,
    normalize_asset,
    validate_import_payload,
)

from trading_journal.journal.journal_store import (
    KeyValueStore,
    TradeStore,
    export_json,
    migrate_record,
    parse_import,
)
from trading_journal.journal.journal_repository import TradeRepository
from trading_journal.journal.journal_analytics import JournalAnalytics, compute_dashboard

__all__ = [
    # Models
    "OperationType", "Setup", "Trend", "Location", "TimeFrame",
    "TrailingStopUsed", "TradeResult", "Outcome", "OUTCOME_R_MAP",
    "TradeRecord", "derive_result", "normalize_asset", "validate_import_payload",
    # Storage
    "KeyValueStore", "TradeStore", "export_json", "migrate_record", "parse_import",
    # Engines
    "TradeRepository", "JournalAnalytics", "compute_dashboard",
]
