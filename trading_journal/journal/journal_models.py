"""
Journal Data Models: Trade record and its enumerated domains
============================================================

TradeRecord   : one discretionary trade entry (asset, setup, outcome, ...)
Enums         : closed value sets for every categorical field
OUTCOME_R_MAP : outcome tag → realized R multiple

Records are pydantic models. The durable/JSON layout uses camelCase keys
(``operationType``, ``timeFrame``, ``trailingStopUsed``); Python code uses the
snake_case attributes. Timestamps are timezone-aware (naive input is read as UTC).
"""

from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from trading_journal.utils.exceptions import TradeValidationError


# ── Enums ────────────────────────────────────────────────────

class OperationType(str, Enum):
    BUY = "buy"
    SELL = "sell"


class Setup(str, Enum):
    BREAKOUT = "breakout"
    PULLBACK = "pullback"


class Trend(str, Enum):
    WITH_FILTER = "with_trend_filter"         # entry in the direction of the reference MA
    AGAINST_FILTER = "against_trend_filter"


class Location(str, Enum):
    NEAR_FILTER = "near_filter"
    FAR_FROM_FILTER = "far_from_filter"


class TimeFrame(str, Enum):
    M2 = "M2"
    M5 = "M5"
    M15 = "M15"
    H1 = "H1"


class TrailingStopUsed(str, Enum):
    TRUE = "true"
    FALSE = "false"


class TradeResult(str, Enum):
    GAIN = "gain"
    LOSS = "loss"


class Outcome(str, Enum):
    LOSS = "-1"
    ONE_TO_ONE = "1:1"
    TWO_TO_ONE = "2:1"
    THREE_TO_ONE = "3:1"
    FOUR_TO_ONE = "4:1"


OUTCOME_R_MAP: Dict[Outcome, int] = {
    Outcome.LOSS: -1,
    Outcome.ONE_TO_ONE: 1,
    Outcome.TWO_TO_ONE: 2,
    Outcome.THREE_TO_ONE: 3,
    Outcome.FOUR_TO_ONE: 4,
}


def derive_result(outcome: Any) -> TradeResult:
    """A full loss ("-1") is the only losing outcome; every reward multiple is a gain."""
    value = outcome.value if isinstance(outcome, Outcome) else outcome
    return TradeResult.LOSS if value == Outcome.LOSS.value else TradeResult.GAIN


def normalize_asset(asset: str) -> str:
    """Grouping key for an asset symbol. Never written back to the record."""
    return asset.upper()


def new_trade_id() -> str:
    """Timestamp plus random suffix, e.g. ``20261019143015123456-9f2c41ab``."""
    return f"{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S%f')}-{uuid.uuid4().hex[:8]}"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# TRADE RECORD
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TradeRecord(BaseModel):
    """
    One journal entry. ``id`` is assigned at creation and never changes.

    ``result`` and ``outcome`` are expected to agree (loss iff outcome "-1"),
    but the record does not enforce it; analytics treat ``outcome`` as truth.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # ── Identity ──
    id: str = Field(min_length=1)
    timestamp: datetime

    # ── Trade description ──
    asset: str = Field(min_length=1)
    operation_type: OperationType = Field(alias="operationType")
    setup: Setup
    trend: Trend
    location: Location
    time_frame: TimeFrame = Field(alias="timeFrame")
    trailing_stop_used: TrailingStopUsed = Field(alias="trailingStopUsed")

    # ── Outcome ──
    result: TradeResult
    outcome: Outcome

    # ── Notes ──
    screenshot: Optional[str] = None   # base64 image payload, opaque
    comment: str = ""

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def r_value(self) -> int:
        return OUTCOME_R_MAP[self.outcome]

    @property
    def is_win(self) -> bool:
        return self.outcome is not Outcome.LOSS

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, d: dict) -> "TradeRecord":
        return cls.model_validate(d)


def field_aliases() -> Dict[str, str]:
    """snake_case attribute → JSON key, for every TradeRecord field."""
    return {name: (info.alias or name) for name, info in TradeRecord.model_fields.items()}


def to_record_keys(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Rewrite snake_case keys to their JSON aliases; camelCase keys pass through."""
    aliases = field_aliases()
    return {aliases.get(k, k): v for k, v in fields.items()}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# IMPORT SHAPE CHECK
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ImportedTradeShape(BaseModel):
    """Minimum an imported element must carry; everything else is kept for migration."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    asset: str = Field(min_length=1)


_IMPORT_ADAPTER = TypeAdapter(List[ImportedTradeShape])


def validation_details(exc: ValidationError) -> List[Dict[str, Any]]:
    return exc.errors(include_url=False, include_context=False, include_input=False)


def validate_import_payload(payload: Any) -> List[Dict[str, Any]]:
    """
    Check that ``payload`` is a list of objects with non-empty ``id`` and ``asset``.
    Returns the elements as plain dicts, or raises TradeValidationError for the whole batch.
    """
    try:
        shapes = _IMPORT_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise TradeValidationError(
            "Import must be a JSON array of trades with non-empty 'id' and 'asset'",
            errors=validation_details(e),
        ) from e
    return [shape.model_dump() for shape in shapes]
