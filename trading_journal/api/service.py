from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from trading_journal.journal.journal_analytics import JournalAnalytics
from trading_journal.journal.journal_repository import TradeRepository
from trading_journal.journal.journal_store import KeyValueStore, TradeStore, export_json, parse_import
from trading_journal.utils.config import Settings
from trading_journal.utils.logger import get_logger, truncate_log_data

logger = get_logger(__name__)


class JournalService:
    """Facade the HTTP layer talks to. One instance per application session."""

    def __init__(self, repository: TradeRepository, settings: Settings) -> None:
        self._repository = repository
        self._settings = settings
        self._analytics = JournalAnalytics(repository, weekly_days=settings.weekly_window_days)

    @classmethod
    def from_settings(cls, settings: Settings) -> JournalService:
        kv = KeyValueStore(settings.journal_db_path)
        store = TradeStore(kv, key=settings.storage_key)
        repository = TradeRepository.open(store)
        logger.info("journal_service_ready", trades=len(repository), db_path=settings.journal_db_path)
        return cls(repository, settings)

    @property
    def repository(self) -> TradeRepository:
        return self._repository

    @property
    def export_filename(self) -> str:
        return self._settings.export_filename

    # ─── Trades ─────────────────────────────────────────────────

    def list_trades(self, text: str = "", sort_key: str = "timestamp",
                    descending: bool = True) -> dict[str, Any]:
        trades = self._repository.query(text=text, sort_key=sort_key, descending=descending)
        return {"trades": [t.to_dict() for t in trades], "total": len(trades)}

    def get_trade(self, trade_id: str) -> Optional[dict[str, Any]]:
        trade = self._repository.get(trade_id)
        return trade.to_dict() if trade else None

    def create_trade(self, fields: dict[str, Any]) -> dict[str, Any]:
        logger.debug("create_trade_request", fields=truncate_log_data(fields))
        return self._repository.add(fields).to_dict()

    def update_trade(self, trade_id: str, fields: dict[str, Any]) -> Optional[dict[str, Any]]:
        logger.debug("update_trade_request", trade_id=trade_id, fields=truncate_log_data(fields))
        trade = self._repository.update(trade_id, fields)
        return trade.to_dict() if trade else None

    def delete_trade(self, trade_id: str) -> bool:
        return self._repository.delete(trade_id)

    def clear_trades(self) -> int:
        count = len(self._repository)
        self._repository.clear()
        return count

    def import_trades(self, content: str | bytes) -> int:
        return self._repository.import_all(parse_import(content))

    def export_trades(self) -> str:
        return export_json(self._repository.trades)

    def reload_trades(self) -> dict[str, Any]:
        """Retry the durable read, e.g. after a locked database kept the journal not-ready."""
        self._repository.load()
        return self.storage_status()

    def storage_status(self) -> dict[str, Any]:
        return {
            "ready": self._repository.ready,
            "trades": len(self._repository),
            "last_save_ok": self._repository.last_save_ok,
        }

    # ─── Statistics ─────────────────────────────────────────────

    def get_summary(self) -> dict[str, Any]:
        return self._analytics.summary()

    def get_dashboard(self, now: Optional[datetime] = None) -> dict[str, Any]:
        return self._analytics.compute_full_analytics(now=now)

    def get_weekly_summary(self, now: Optional[datetime] = None) -> Optional[dict[str, Any]]:
        return self._analytics.weekly(now=now)
