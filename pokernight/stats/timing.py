"""Buy-in timing analytics.

Behavioural diagnostics over the transaction log of closed sessions, team
players only. A session is analyzable when it has at least one BUY_IN and
one CASH_OUT and its timeline runs from the first BUY_IN to the last
CASH_OUT, split into four equal quarters. A re-buy is any BUY_IN of a player
after their first one in that session.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from pokernight.ledger.session import SessionLedger
from pokernight.ledger.transactions import TransactionRecord, TransactionType

MIN_VELOCITY_HOURS = 0.5
MIN_VELOCITY_SESSIONS = 2
MIN_FIRST_REBUY_SESSIONS = 2
BURST_GAP = timedelta(minutes=15)
MIN_TILT_REBUYS = 4
MIN_HEATMAP_SESSIONS = 3
MIN_SELL_EVENTS = 2
MIN_LATE_NIGHT_HOURS = 1.0
MIN_LATE_NIGHT_SESSIONS = 3


@dataclass
class Timeline:
    """Start and end of an analyzable session."""
    start: datetime
    end: datetime

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    @property
    def midpoint(self) -> datetime:
        return self.start + (self.end - self.start) / 2

    def elapsed_percent(self, at: datetime) -> float:
        """Share of the session elapsed at ``at``, clamped to [0, 100]."""
        fraction = (at - self.start) / (self.end - self.start)
        return min(max(fraction, 0.0), 1.0) * 100

    def quarter(self, at: datetime) -> int:
        """Quarter index 0-3; an event at the very end belongs to the last."""
        return min(int(self.elapsed_percent(at) / 25), 3)


def session_timeline(records: list[TransactionRecord]) -> Optional[Timeline]:
    """Timeline of a session, or None when it cannot be analyzed."""
    buy_ins = [r.created_at for r in records if r.type == TransactionType.BUY_IN]
    cash_outs = [r.created_at for r in records if r.type == TransactionType.CASH_OUT]
    if not buy_ins or not cash_outs:
        return None
    timeline = Timeline(start=min(buy_ins), end=max(cash_outs))
    if timeline.end <= timeline.start:
        return None
    return timeline


def count_burst_rebuys(rebuys: list[datetime]) -> int:
    """Count re-buys that are part of a burst.

    A re-buy within ``BURST_GAP`` of the previous one puts both in a burst.
    """
    in_burst = set()
    for i in range(1, len(rebuys)):
        if rebuys[i] - rebuys[i - 1] <= BURST_GAP:
            in_burst.add(i - 1)
            in_burst.add(i)
    return len(in_burst)


@dataclass
class _PlayerTiming:
    """Accumulator for one player across sessions."""
    user_id: str
    name: str
    sessions: int = 0
    rebuys: int = 0
    early_rebuys: int = 0
    late_rebuys: int = 0
    velocity_sessions: int = 0
    velocity_rebuys: int = 0
    velocity_hours: float = 0.0
    first_rebuy_minutes: list[float] = field(default_factory=list)
    sessions_without_rebuy: int = 0
    burst_rebuys: int = 0
    quarter_counts: list[list[int]] = field(default_factory=list)
    sell_percents: list[float] = field(default_factory=list)
    buy_percents: list[float] = field(default_factory=list)
    late_night_ratios: list[float] = field(default_factory=list)

    def add_session(self, timeline: Timeline, records: list[TransactionRecord]) -> None:
        buy_ins = [r.created_at for r in records if r.type == TransactionType.BUY_IN and r.player_id == self.user_id]
        sells = [r for r in records if r.type == TransactionType.SELL_BUY_IN]
        for record in sells:
            if record.player_id == self.user_id:
                self.sell_percents.append(timeline.elapsed_percent(record.created_at))
            elif record.target_player_id == self.user_id:
                self.buy_percents.append(timeline.elapsed_percent(record.created_at))
        if not buy_ins:
            return

        self.sessions += 1
        first, rebuys = buy_ins[0], buy_ins[1:]
        self.rebuys += len(rebuys)

        midpoint = timeline.midpoint
        self.early_rebuys += sum(1 for t in rebuys if t < midpoint)
        self.late_rebuys += sum(1 for t in rebuys if t >= midpoint)

        cash_outs = [r.created_at for r in records if r.type == TransactionType.CASH_OUT and r.player_id == self.user_id]
        left_at = cash_outs[-1] if cash_outs else timeline.end
        play_hours = (left_at - first).total_seconds() / 3600
        if play_hours >= MIN_VELOCITY_HOURS:
            self.velocity_sessions += 1
            self.velocity_rebuys += len(rebuys)
            self.velocity_hours += play_hours

        if rebuys:
            self.first_rebuy_minutes.append((rebuys[0] - first).total_seconds() / 60)
        else:
            self.sessions_without_rebuy += 1

        self.burst_rebuys += count_burst_rebuys(rebuys)

        quarters = [0, 0, 0, 0]
        for t in buy_ins:
            quarters[timeline.quarter(t)] += 1
        self.quarter_counts.append(quarters)

        duration = timeline.duration_hours
        if duration >= MIN_LATE_NIGHT_HOURS and rebuys:
            last_quarter = sum(1 for t in rebuys if timeline.quarter(t) == 3)
            overall_rate = len(rebuys) / duration
            last_quarter_rate = last_quarter / (duration / 4)
            self.late_night_ratios.append(last_quarter_rate / overall_rate)

    def to_dict(self) -> dict:
        """Report the metrics that have enough data behind them."""
        result = {
            "user_id": self.user_id,
            "player": self.name,
            "sessions_analyzed": self.sessions,
            "total_rebuys": self.rebuys,
            "early_late": None,
            "velocity": None,
            "first_rebuy": None,
            "tilt": None,
            "quarter_heatmap": None,
            "sell_timing": None,
            "late_night_index": None,
        }

        if self.rebuys:
            result["early_late"] = {
                "early": self.early_rebuys,
                "late": self.late_rebuys,
                "late_percent": round(self.late_rebuys / self.rebuys * 100),
            }

        if self.velocity_sessions >= MIN_VELOCITY_SESSIONS and self.velocity_rebuys >= 1:
            result["velocity"] = {
                "rebuys_per_hour": round(self.velocity_rebuys / self.velocity_hours, 2),
                "sessions": self.velocity_sessions,
            }

        if len(self.first_rebuy_minutes) >= MIN_FIRST_REBUY_SESSIONS:
            result["first_rebuy"] = {
                "avg_minutes": round(sum(self.first_rebuy_minutes) / len(self.first_rebuy_minutes), 2),
                "sessions": len(self.first_rebuy_minutes),
                "survival_rate": round(self.sessions_without_rebuy / self.sessions * 100),
            }

        if self.rebuys >= MIN_TILT_REBUYS:
            result["tilt"] = {
                "burst_rebuys": self.burst_rebuys,
                "tilt_rate": round(self.burst_rebuys / self.rebuys * 100),
            }

        if len(self.quarter_counts) >= MIN_HEATMAP_SESSIONS:
            n = len(self.quarter_counts)
            result["quarter_heatmap"] = [
                round(sum(q[i] for q in self.quarter_counts) / n, 2) for i in range(4)
            ]

        if len(self.sell_percents) >= MIN_SELL_EVENTS or len(self.buy_percents) >= MIN_SELL_EVENTS:
            result["sell_timing"] = {
                "sold": len(self.sell_percents),
                "bought": len(self.buy_percents),
                "avg_sell_percent": _average_percent(self.sell_percents),
                "avg_buy_percent": _average_percent(self.buy_percents),
            }

        if len(self.late_night_ratios) >= MIN_LATE_NIGHT_SESSIONS:
            result["late_night_index"] = round(sum(self.late_night_ratios) / len(self.late_night_ratios), 2)

        return result


def _average_percent(values: list[float]) -> Optional[int]:
    if not values:
        return None
    return round(sum(values) / len(values))


def analyze_buy_in_timing(sessions: Iterable[SessionLedger], members: Iterable) -> list[dict]:
    """Timing metrics for every team player who played an analyzable session.

    Args:
        sessions: Closed sessions with their transaction logs.
        members: Team players, anything with ``id`` and ``name``.

    Returns:
        One entry per player with at least one analyzed session, by name.
    """
    players = {m.id: _PlayerTiming(user_id=m.id, name=m.name) for m in members}
    for ledger in sessions:
        records = ledger.transactions
        timeline = session_timeline(records)
        if timeline is None:
            continue
        for timing in players.values():
            timing.add_session(timeline, records)

    analyzed = [p for p in players.values() if p.sessions or p.sell_percents or p.buy_percents]
    return [p.to_dict() for p in sorted(analyzed, key=lambda p: p.name)]
