"""Yearly statistics over closed sessions.

Everything here is a pure function of the sessions, special hands and team
roster handed in, so the same inputs always produce the same report.
"""
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional

from pokernight.ledger import chips
from pokernight.ledger.session import SessionLedger
from pokernight.ledger.special_hands import SpecialHand
from pokernight.ledger.transactions import TransactionType
from pokernight.stats.timing import analyze_buy_in_timing


@dataclass
class TeamMember:
    """A TEAM player counted in the statistics."""
    id: str
    name: str


@dataclass
class PlayerStats:
    """One team player's results for the year."""
    user_id: str
    name: str
    total_buy_ins: int
    total_cash_out: int
    net_gain_loss: int
    sessions_played: int
    total_sessions: int
    attendance_rate: float
    win_rate: float
    avg_gain_loss: float
    biggest_win: int
    biggest_loss: int

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "player": self.name,
            "total_buy_ins": self.total_buy_ins,
            "total_cash_out": self.total_cash_out,
            "net_gain_loss": self.net_gain_loss,
            "sessions_played": self.sessions_played,
            "total_sessions": self.total_sessions,
            "attendance_rate": self.attendance_rate,
            "win_rate": self.win_rate,
            "avg_gain_loss": self.avg_gain_loss,
            "biggest_win": self.biggest_win,
            "biggest_loss": self.biggest_loss,
        }


def _chronological(sessions: Iterable[SessionLedger]) -> list[SessionLedger]:
    return sorted(sessions, key=lambda s: (s.session.date, s.session.id))


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def compute_player_stats(
    sessions: list[SessionLedger],
    members: list[TeamMember],
) -> list[PlayerStats]:
    """Per-player totals, rates and extremes, best net result first.

    Args:
        sessions: Closed, non-archived sessions of the year.
        members: Active team players.

    Returns:
        Stats for every member, including those who never played.
    """
    total_sessions = len(sessions)
    stats = []

    for member in members:
        total_buy_ins = 0
        total_cash_out = 0
        sessions_played = 0
        wins = 0
        biggest_win = 0
        biggest_loss = 0

        for ledger in sessions:
            entry = ledger.entries.get(member.id)
            if entry is None:
                continue
            sessions_played += 1
            net = chips.net_result(entry.buy_in_count, entry.cash_out, entry.chips_sold)
            total_buy_ins += entry.buy_in_total
            total_cash_out += chips.effective_cash_out(entry.cash_out, entry.chips_sold)
            if net > 0:
                wins += 1
                biggest_win = max(biggest_win, net)
            elif net < 0:
                biggest_loss = min(biggest_loss, net)

        net_gain_loss = total_cash_out - total_buy_ins
        stats.append(PlayerStats(
            user_id=member.id,
            name=member.name,
            total_buy_ins=total_buy_ins,
            total_cash_out=total_cash_out,
            net_gain_loss=net_gain_loss,
            sessions_played=sessions_played,
            total_sessions=total_sessions,
            attendance_rate=_percent(sessions_played, total_sessions),
            win_rate=_percent(wins, sessions_played),
            avg_gain_loss=round(net_gain_loss / sessions_played, 2) if sessions_played else 0.0,
            biggest_win=biggest_win,
            biggest_loss=abs(biggest_loss),
        ))

    # Stable sort keeps roster order for equal results
    stats.sort(key=lambda s: s.net_gain_loss, reverse=True)
    return stats


def session_duration_minutes(ledger: SessionLedger) -> Optional[int]:
    """Minutes from the first buy-in to the last cash-out, if both exist."""
    buy_ins = [r for r in ledger.transactions if r.type == TransactionType.BUY_IN]
    cash_outs = [r for r in ledger.transactions if r.type == TransactionType.CASH_OUT]
    if not buy_ins or not cash_outs:
        return None
    elapsed = cash_outs[-1].created_at - buy_ins[0].created_at
    return round(elapsed.total_seconds() / 60)


def compute_session_data(sessions: list[SessionLedger]) -> list[dict]:
    """Per-session pot, duration and player results, oldest first."""
    data = []
    for ledger in _chronological(sessions):
        players = ledger.players
        data.append({
            "session_id": ledger.id,
            "date": ledger.session.date.isoformat(),
            "host_location": ledger.session.host_location_name,
            # Chips sold add value to the table on top of buy-ins
            "total_pot": sum(e.buy_in_total + e.chips_sold for e in players),
            "duration_minutes": session_duration_minutes(ledger),
            "players": [
                {
                    "user_id": e.user_id,
                    "player": e.player_name or "Unknown",
                    "buy_ins": e.buy_in_total,
                    "cash_out": chips.effective_cash_out(e.cash_out, e.chips_sold),
                    "net_result": chips.net_result(e.buy_in_count, e.cash_out, e.chips_sold),
                }
                for e in players
            ],
        })
    return data


def compute_cumulative_earnings(
    sessions: list[SessionLedger],
    members: list[TeamMember],
) -> list[dict]:
    """Running net total per team player, one data point per session date."""
    running = {m.id: 0 for m in members}
    series = []
    for ledger in _chronological(sessions):
        for entry in ledger.entries.values():
            if entry.user_id in running:
                running[entry.user_id] += chips.net_result(
                    entry.buy_in_count, entry.cash_out, entry.chips_sold
                )
        point = {"date": ledger.session.date.date().isoformat()}
        for member in members:
            point[member.name] = running[member.id]
        series.append(point)
    return series


def compute_asterisk_leaderboard(hands: list[SpecialHand]) -> list[dict]:
    """Rank players by asterisk count, then by their strongest hand.

    Players tied on both keep the order their first hand was recorded in.
    """
    by_player: dict[str, list[SpecialHand]] = {}
    for hand in sorted(hands, key=lambda h: h.created_at):
        by_player.setdefault(hand.player_id, []).append(hand)

    leaderboard = []
    for player_id, player_hands in by_player.items():
        counts = Counter(h.hand_type for h in player_hands)
        strongest = max(counts, key=lambda t: t.strength)
        leaderboard.append({
            "user_id": player_id,
            "player": player_hands[0].player_name,
            "total_asterisks": len(player_hands),
            "hands": [
                {"hand_type": t.value, "label": t.label, "count": counts[t], "strength": t.strength}
                for t in sorted(counts, key=lambda t: t.strength, reverse=True)
            ],
            "strongest_hand": strongest.value,
            "strongest_hand_strength": strongest.strength,
        })

    leaderboard.sort(key=lambda s: (s["total_asterisks"], s["strongest_hand_strength"]), reverse=True)
    return leaderboard


def compute_hosting_stats(sessions: list[SessionLedger]) -> list[dict]:
    """Number of sessions hosted at each location, most first."""
    counts: dict[str, dict] = {}
    for ledger in _chronological(sessions):
        location_id = ledger.session.host_location_id
        if not location_id:
            continue
        if location_id not in counts:
            counts[location_id] = {
                "user_id": location_id,
                "player": ledger.session.host_location_name or "Unknown",
                "count": 0,
            }
        counts[location_id]["count"] += 1
    return sorted(counts.values(), key=lambda c: c["count"], reverse=True)


def piggy_bank_total(sessions: Iterable[SessionLedger]) -> int:
    """Sum of the piggy-bank accounts of the given sessions."""
    return sum(ledger.piggy_bank.amount for ledger in sessions)


def build_report(
    year: int,
    sessions: list[SessionLedger],
    members: list[TeamMember],
    hands: list[SpecialHand],
) -> dict:
    """Build the full statistics report for a year.

    Args:
        year: Calendar year the inputs were selected for.
        sessions: Closed, non-archived sessions dated in ``year``.
        members: Active team players.
        hands: Special hands recorded in those sessions.

    Returns:
        JSON-serializable report.
    """
    return {
        "year": year,
        "total_sessions": len(sessions),
        "player_stats": [s.to_dict() for s in compute_player_stats(sessions, members)],
        "session_data": compute_session_data(sessions),
        "cumulative_earnings": compute_cumulative_earnings(sessions, members),
        "asterisk_leaderboard": compute_asterisk_leaderboard(hands),
        "special_hands_details": [h.to_dict() for h in sorted(hands, key=lambda h: h.created_at)],
        "piggy_bank_total": piggy_bank_total(sessions),
        "hosting_stats": compute_hosting_stats(sessions),
        "buy_in_timing": analyze_buy_in_timing(sessions, members),
    }
