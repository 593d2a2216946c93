"""
Journal Analytics Engine: R-multiple statistics over the trade list
====================================================================

Pure projections of a trade sequence (storage order, newest first):
  - Summary metrics (win rate, most used setup / operation)
  - Cumulative R timeline (oldest first)
  - R totals per setup and per asset
  - Win/loss tallies per trend relation
  - Distributions by time frame, outcome and setup
  - Trailing 7-day rollup

``outcome`` is the ground truth for both R values and win/loss decisions.
Every ratio short-circuits on empty input; nothing here mutates its input.
"""

from __future__ import annotations
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, TypeVar

from trading_journal.journal.journal_models import (
    OperationType, Outcome, Setup, TimeFrame, TradeRecord, Trend, normalize_asset,
)

NOT_AVAILABLE = "N/A"

E = TypeVar("E")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HELPERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def win_rate(trades: Sequence[TradeRecord]) -> float:
    """Percentage of winning trades, one decimal. 0 for an empty list."""
    total = len(trades)
    if total == 0:
        return 0.0
    wins = sum(1 for t in trades if t.is_win)
    return round(wins / total * 100, 1)


def _most_common(values: Iterable[str]) -> str:
    """Plurality value; ties go to the value encountered first."""
    counts: Dict[str, int] = {}
    for v in values:
        counts[v] = counts.get(v, 0) + 1
    if not counts:
        return NOT_AVAILABLE
    best, best_count = NOT_AVAILABLE, 0
    for value, count in counts.items():   # insertion order == first encountered
        if count > best_count:
            best, best_count = value, count
    return best


def _most_common_member(values: Iterable[E], domain: Iterable[E]) -> str:
    """Plurality enum value; ties go to the earlier member of ``domain``."""
    counts = Counter(values)
    if not counts:
        return NOT_AVAILABLE
    best = max(domain, key=lambda member: counts.get(member, 0))
    return best.value


def _zero_counts(domain: Iterable[Any]) -> Dict[str, int]:
    return {member.value: 0 for member in domain}


def _r_by_setup(trades: Iterable[TradeRecord]) -> Dict[str, int]:
    totals = _zero_counts(Setup)
    for t in trades:
        totals[t.setup.value] += t.r_value
    return totals


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SUMMARY & PERFORMANCE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def summary_metrics(trades: Sequence[TradeRecord]) -> Dict[str, Any]:
    return {
        "total_trades": len(trades),
        "win_rate": win_rate(trades),
        "most_used_setup": _most_common_member((t.setup for t in trades), Setup),
        "most_common_operation": _most_common_member((t.operation_type for t in trades), OperationType),
    }


def cumulative_r_timeline(trades: Sequence[TradeRecord]) -> List[Dict[str, Any]]:
    """Running R total, oldest trade first (reverse of storage order)."""
    timeline = []
    cumulative_r = 0
    for t in reversed(trades):
        cumulative_r += t.r_value
        timeline.append({
            "date": t.timestamp.date().isoformat(),
            "timestamp": t.timestamp.isoformat(),
            "cumulative_r": cumulative_r,
        })
    return timeline


def setup_performance(trades: Sequence[TradeRecord]) -> Dict[str, int]:
    """Summed R per setup; every setup present, 0 when unused."""
    return _r_by_setup(trades)


def asset_performance(trades: Sequence[TradeRecord]) -> List[Dict[str, Any]]:
    """Summed R per upper-cased asset, best first."""
    totals: Dict[str, int] = {}
    for t in reversed(trades):
        key = normalize_asset(t.asset)
        totals[key] = totals.get(key, 0) + t.r_value
    rows = [{"asset": asset, "r": r} for asset, r in totals.items()]
    return sorted(rows, key=lambda row: row["r"], reverse=True)


def trend_performance(trades: Sequence[TradeRecord]) -> Dict[str, Dict[str, int]]:
    tallies = {trend.value: {"wins": 0, "losses": 0} for trend in Trend}
    for t in trades:
        tallies[t.trend.value]["wins" if t.is_win else "losses"] += 1
    return tallies


# ── Distributions ──

def timeframe_distribution(trades: Sequence[TradeRecord]) -> Dict[str, int]:
    counts = _zero_counts(TimeFrame)
    for t in trades:
        counts[t.time_frame.value] += 1
    return counts


def outcome_distribution(trades: Sequence[TradeRecord]) -> Dict[str, int]:
    counts = _zero_counts(Outcome)
    for t in trades:
        counts[t.outcome.value] += 1
    return counts


def setup_distribution(trades: Sequence[TradeRecord]) -> Dict[str, int]:
    counts = _zero_counts(Setup)
    for t in trades:
        counts[t.setup.value] += 1
    return counts


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# WEEKLY ROLLUP
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def weekly_summary(trades: Sequence[TradeRecord], now: Optional[datetime] = None,
                   days: int = 7) -> Optional[Dict[str, Any]]:
    """
    Rollup of trades from the last ``days`` days (boundary inclusive).
    Returns None when the window holds no trades.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    cutoff = now - timedelta(days=days)

    recent = [t for t in trades if t.timestamp >= cutoff]
    if not recent:
        return None

    setup_r = _r_by_setup(recent)
    best_setup = max(Setup, key=lambda s: setup_r[s.value]).value

    return {
        "total_trades": len(recent),
        "win_rate": f"{win_rate(recent):.1f}%",
        "best_setup": best_setup,
        "most_traded_asset": _most_common(normalize_asset(t.asset) for t in recent),
        "predominant_trend": _most_common(t.trend.value for t in recent),
        "most_used_timeframe": _most_common(t.time_frame.value for t in recent),
        "most_common_outcome": _most_common(t.outcome.value for t in recent),
    }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# DASHBOARD
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def compute_dashboard(trades: Sequence[TradeRecord], now: Optional[datetime] = None,
                      weekly_days: int = 7) -> Dict[str, Any]:
    trades = tuple(trades)
    return {
        "summary": summary_metrics(trades),
        "timeline": cumulative_r_timeline(trades),
        "setup_performance": setup_performance(trades),
        "asset_performance": asset_performance(trades),
        "trend_performance": trend_performance(trades),
        "timeframe_distribution": timeframe_distribution(trades),
        "outcome_distribution": outcome_distribution(trades),
        "setup_distribution": setup_distribution(trades),
        "weekly": weekly_summary(trades, now=now, days=weekly_days),
    }


class JournalAnalytics:
    """
    Read-only view of a repository's statistics.
    Recomputed in full on every call; the journal is personal-scale.
    """

    def __init__(self, repository, weekly_days: int = 7):
        self._repository = repository
        self._weekly_days = weekly_days

    def summary(self) -> Dict[str, Any]:
        return summary_metrics(self._repository.trades)

    def weekly(self, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        return weekly_summary(self._repository.trades, now=now, days=self._weekly_days)

    def compute_full_analytics(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return compute_dashboard(self._repository.trades, now=now, weekly_days=self._weekly_days)
