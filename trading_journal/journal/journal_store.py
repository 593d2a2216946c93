"""
Journal Storage Engine: one JSON slot in a SQLite key-value store
==================================================================

The whole trade list lives as a single JSON array under one fixed key.
There is no schema version field: older record shapes are detected by the
absence of ``result`` / ``trailingStopUsed`` and migrated on load.

Tables:
  kv_store: (key, value, updated_at); the trade list is one row
"""

from __future__ import annotations
import json
import os
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from trading_journal.journal.journal_models import (
    TradeRecord, TrailingStopUsed, derive_result,
)
from trading_journal.utils.exceptions import DeserializationError, StorageError
from trading_journal.utils.logger import get_logger

logger = get_logger(__name__)

CORRUPT_SUFFIX = ".corrupt"

# older backups store the stop management tag under "trailingStop"
LEGACY_TRAILING_STOP = {
    "T/F": TrailingStopUsed.FALSE.value,
    "B/B": TrailingStopUsed.TRUE.value,
}


class KeyValueStore:
    """
    Durable string key-value store backed by SQLite.
    One connection per thread; ``close`` closes all of them.
    """

    def __init__(self, db_path: str = "data/journal.db"):
        self._db_path = db_path
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._local = threading.local()
        self._conns: List[sqlite3.Connection] = []
        self._conns_lock = threading.Lock()
        self._init_db()
        logger.info("kv_store_initialized", db_path=db_path)

    @property
    def db_path(self) -> str:
        return self._db_path

    def _get_conn(self) -> sqlite3.Connection:
        if not hasattr(self._local, "conn") or self._local.conn is None:
            # only the owning thread uses it; close() may run elsewhere
            conn = sqlite3.connect(self._db_path, timeout=10, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            with self._conns_lock:
                self._conns.append(conn)
            self._local.conn = conn
        return self._local.conn

    def _init_db(self):
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key         TEXT PRIMARY KEY,
                value       TEXT NOT NULL,
                updated_at  TEXT DEFAULT ''
            );
        """)
        conn.commit()

    def get(self, key: str) -> Optional[str]:
        row = self._get_conn().execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, datetime.now(timezone.utc).isoformat()))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to write key '{key}': {e}") from e

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to delete key '{key}': {e}") from e

    def keys(self) -> List[str]:
        rows = self._get_conn().execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [r["key"] for r in rows]

    @property
    def open_connections(self) -> int:
        with self._conns_lock:
            return len(self._conns)

    def close(self) -> None:
        """Close the connections of every thread that used this store."""
        with self._conns_lock:
            conns, self._conns = self._conns, []
        for conn in conns:
            conn.close()
        self._local = threading.local()
        logger.debug("kv_store_closed", connections=len(conns))


# ─── MIGRATION ──────────────────────────────────────────────────

def migrate_record(raw: Union[Mapping[str, Any], TradeRecord]) -> TradeRecord:
    """
    Bring a stored/imported record up to the current shape.

    - missing ``result``           → derived from ``outcome`` (loss iff "-1")
    - missing ``trailingStopUsed`` → "false"
    - legacy ``date`` key          → ``timestamp``
    - legacy ``trailingStop`` tag  → ``trailingStopUsed`` ("T/F" → "false", "B/B" → "true")

    Records that already carry both fields are validated unchanged.
    Idempotent. Raises pydantic ValidationError when the record cannot be built,
    TypeError when ``raw`` is not an object.
    """
    if isinstance(raw, TradeRecord):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"Trade record must be an object, got {type(raw).__name__}")
    data: Dict[str, Any] = dict(raw)
    if "timestamp" not in data and "date" in data:
        data["timestamp"] = data.pop("date")
    if "result" not in data:
        data["result"] = derive_result(data.get("outcome")).value
    if "trailingStopUsed" not in data and "trailing_stop_used" not in data:
        legacy = data.pop("trailingStop", None)
        if legacy is None:
            data["trailingStopUsed"] = TrailingStopUsed.FALSE.value
        else:
            data["trailingStopUsed"] = (
                LEGACY_TRAILING_STOP.get(legacy, legacy) if isinstance(legacy, str) else legacy)
    return TradeRecord.model_validate(data)


# ─── SERIALIZATION ──────────────────────────────────────────────

def dump_trades(trades: Iterable[TradeRecord], indent: Optional[int] = None) -> str:
    return json.dumps([t.to_dict() for t in trades], indent=indent, ensure_ascii=False)


def export_json(trades: Iterable[TradeRecord]) -> str:
    """Pretty-printed backup document; same layout as the durable slot."""
    return dump_trades(trades, indent=2)


def parse_import(text: Union[str, bytes]) -> Any:
    """Parse an import document. The shape is checked later by the repository."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DeserializationError(f"Import file is not valid JSON: {e}") from e


# ─── GATEWAY ────────────────────────────────────────────────────

class TradeStore:
    """
    Sole reader/writer of the trade list slot.
    ``load`` never half-loads: an unparsable slot loads as empty, but a slot that
    cannot be read at all raises StorageError so the caller does not mistake it
    for an empty journal. ``save`` never raises.
    """

    def __init__(self, kv: KeyValueStore, key: str = "tradingJournalTrades"):
        self._kv = kv
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> List[TradeRecord]:
        try:
            stored = self._kv.get(self._key)
        except sqlite3.Error as e:
            logger.error("trades_read_failed", key=self._key, error=str(e))
            raise StorageError(f"Failed to read key '{self._key}': {e}") from e
        if stored is None:
            return []

        try:
            parsed = json.loads(stored)
            if not isinstance(parsed, list):
                raise DeserializationError(
                    f"Expected a JSON array, got {type(parsed).__name__}")
            trades = [migrate_record(raw) for raw in parsed]
        except (ValueError, TypeError, DeserializationError) as e:
            logger.error("trades_load_failed", key=self._key, error=str(e))
            self._preserve_corrupt(stored)
            return []

        logger.info("trades_loaded", key=self._key, count=len(trades))
        return trades

    def save(self, trades: Iterable[TradeRecord]) -> bool:
        trades = list(trades)
        try:
            self._kv.set(self._key, dump_trades(trades))
        except (StorageError, sqlite3.Error) as e:
            logger.error("trades_save_failed", key=self._key, count=len(trades), error=str(e))
            return False
        logger.debug("trades_saved", key=self._key, count=len(trades))
        return True

    def _preserve_corrupt(self, stored: str) -> None:
        backup_key = self._key + CORRUPT_SUFFIX
        try:
            self._kv.set(backup_key, stored)
            logger.warning("corrupt_trades_preserved", key=backup_key, size=len(stored))
        except StorageError as e:
            logger.error("corrupt_trades_backup_failed", key=backup_key, error=str(e))
