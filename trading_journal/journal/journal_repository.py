"""
Trade Repository: owned, ordered in-memory trade collection
============================================================

Newest-first list of TradeRecords. Every mutation is applied in memory first
and then written through the TradeStore; a failed write is logged and leaves
the in-memory state as the only copy until the next successful save.

Nothing is written before the initial ``load()`` so an empty default can
never clobber the durable slot.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from trading_journal.journal.journal_models import (
    TradeRecord, derive_result, field_aliases, new_trade_id, to_record_keys,
    validate_import_payload, validation_details,
)
from trading_journal.journal.journal_store import TradeStore, migrate_record
from trading_journal.utils.exceptions import StorageError, TradeValidationError
from trading_journal.utils.logger import get_logger

logger = get_logger(__name__)

SEARCH_FIELDS = ("asset", "setup", "comment")


class TradeRepository:
    """
    Single owner of the canonical trade sequence.
    Not-found on update/delete is a no-op; import is all-or-nothing.
    """

    def __init__(self, store: TradeStore):
        self._store = store
        self._trades: List[TradeRecord] = []
        self._ready = False
        self.last_save_ok: Optional[bool] = None

    @classmethod
    def open(cls, store: TradeStore) -> "TradeRepository":
        repo = cls(store)
        repo.load()
        return repo

    # ─── STATE ──────────────────────────────────────────────────

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def trades(self) -> Tuple[TradeRecord, ...]:
        return tuple(self._trades)

    def __len__(self) -> int:
        return len(self._trades)

    def get(self, trade_id: str) -> Optional[TradeRecord]:
        for trade in self._trades:
            if trade.id == trade_id:
                return trade
        return None

    def load(self) -> int:
        """
        Initial (or retried) read of the durable slot. When the slot cannot be
        read the repository stays not-ready, so no save can overwrite it.
        """
        try:
            trades = self._store.load()
        except StorageError as e:
            logger.error("repository_load_failed", error=str(e), ready=self._ready)
            return len(self._trades)
        self._trades = trades
        self._ready = True
        return len(self._trades)

    def _persist(self) -> None:
        if not self._ready:
            logger.warning("save_skipped_not_loaded", count=len(self._trades))
            return
        self.last_save_ok = self._store.save(self._trades)

    # ─── MUTATIONS ──────────────────────────────────────────────

    def add(self, fields: Dict[str, Any]) -> TradeRecord:
        """Create a record with a fresh id and the current timestamp, newest first."""
        data = to_record_keys(fields)
        data.pop("id", None)
        data.pop("timestamp", None)
        if "result" not in data and "outcome" in data:
            data["result"] = derive_result(data["outcome"]).value

        existing = {t.id for t in self._trades}
        trade_id = new_trade_id()
        while trade_id in existing:
            trade_id = new_trade_id()
        data["id"] = trade_id
        data["timestamp"] = datetime.now(timezone.utc)

        try:
            trade = TradeRecord.model_validate(data)
        except ValidationError as e:
            raise TradeValidationError("Invalid trade fields", errors=validation_details(e)) from e

        self._trades.insert(0, trade)
        logger.info("trade_added", trade_id=trade.id, asset=trade.asset, outcome=trade.outcome.value)
        self._persist()
        return trade

    def update(self, trade_id: str, partial: Dict[str, Any]) -> Optional[TradeRecord]:
        """Shallow-merge ``partial`` into the record. ``id`` cannot change."""
        for i, current in enumerate(self._trades):
            if current.id != trade_id:
                continue
            changes = to_record_keys(partial)
            changes.pop("id", None)
            merged = {**current.to_dict(), **changes}
            try:
                updated = TradeRecord.model_validate(merged)
            except ValidationError as e:
                raise TradeValidationError("Invalid trade fields", errors=validation_details(e)) from e
            self._trades[i] = updated
            logger.info("trade_updated", trade_id=trade_id, fields=sorted(changes))
            self._persist()
            return updated

        logger.warning("trade_update_not_found", trade_id=trade_id)
        return None

    def delete(self, trade_id: str) -> bool:
        remaining = [t for t in self._trades if t.id != trade_id]
        if len(remaining) == len(self._trades):
            logger.warning("trade_delete_not_found", trade_id=trade_id)
            return False
        self._trades = remaining
        logger.info("trade_deleted", trade_id=trade_id)
        self._persist()
        return True

    def import_all(self, candidates: Any) -> int:
        """
        Replace the whole collection with ``candidates``.
        Raises TradeValidationError and changes nothing when any element is invalid.
        """
        if isinstance(candidates, (list, tuple)):
            candidates = [c.to_dict() if isinstance(c, TradeRecord) else c for c in candidates]
        raw_records = validate_import_payload(candidates)

        imported: List[TradeRecord] = []
        for index, raw in enumerate(raw_records):
            try:
                imported.append(migrate_record(raw))
            except ValidationError as e:
                errors = [{**err, "loc": (index, *err["loc"])} for err in validation_details(e)]
                raise TradeValidationError(
                    f"Trade #{index} ({raw.get('id')}) is not a valid record", errors=errors) from e

        ids = [t.id for t in imported]
        if len(set(ids)) != len(ids):
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            raise TradeValidationError(f"Duplicate trade ids in import: {', '.join(dupes)}")

        self._trades = imported
        logger.info("trades_imported", count=len(imported))
        self._persist()
        return len(imported)

    def clear(self) -> None:
        count = len(self._trades)
        self._trades = []
        logger.info("trades_cleared", count=count)
        self._persist()

    # ─── TABLE QUERIES ──────────────────────────────────────────

    def query(self, text: str = "", sort_key: str = "timestamp",
              descending: bool = True) -> List[TradeRecord]:
        """Case-insensitive search over asset/setup/comment, then a stable sort."""
        return sort_trades(search_trades(self._trades, text), sort_key, descending)


def search_trades(trades: Sequence[TradeRecord], text: str = "") -> List[TradeRecord]:
    needle = text.strip().lower()
    if not needle:
        return list(trades)
    return [t for t in trades if any(needle in _text_of(getattr(t, f)).lower() for f in SEARCH_FIELDS)]


def sort_trades(trades: Sequence[TradeRecord], sort_key: str = "timestamp",
                descending: bool = True) -> List[TradeRecord]:
    """Sort by a record attribute or its JSON key (``timeFrame`` == ``time_frame``)."""
    attr = {alias: name for name, alias in field_aliases().items()}.get(sort_key, sort_key)
    if attr not in TradeRecord.model_fields:
        raise ValueError(f"Unknown sort key: {sort_key}")
    return sorted(trades, key=lambda t: _sort_value(getattr(t, attr)), reverse=descending)


def _text_of(value: Any) -> str:
    if value is None:
        return ""
    return value.value if hasattr(value, "value") else str(value)


def _sort_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value
    return _text_of(value)
