"""Tests for buy-in timing analytics."""
from datetime import datetime, timedelta, timezone

from pokernight.ledger.models import PlayerType
from pokernight.stats.engine import TeamMember
from pokernight.stats.timing import Timeline, analyze_buy_in_timing, count_burst_rebuys, session_timeline

from tests.conftest import make_ledger

T0 = datetime(2024, 5, 3, 20, 0, tzinfo=timezone.utc)

X = TeamMember(id="x", name="xavier")
Y = TeamMember(id="y", name="yara")


def at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


def scripted_session(events, day_offset: int = 0):
    """Run ``(minute, method, args)`` events against a fresh ledger at fixed times."""
    start = T0 + timedelta(days=day_offset)
    ledger = make_ledger(date=start)
    for minute, method, args in events:
        moment = start + timedelta(minutes=minute)
        ledger.clock = lambda moment=moment: moment
        getattr(ledger, method)(*args)
    return ledger


def timing_for(result, user_id):
    return next(r for r in result if r["user_id"] == user_id)


class TestTimeline:
    """Test session timelines."""

    def test_quarters(self):
        timeline = Timeline(start=at(0), end=at(120))

        assert timeline.duration_hours == 2
        assert timeline.midpoint == at(60)
        assert timeline.quarter(at(0)) == 0
        assert timeline.quarter(at(30)) == 1
        assert timeline.quarter(at(119)) == 3
        assert timeline.quarter(at(120)) == 3

    def test_elapsed_percent_is_clamped(self):
        timeline = Timeline(start=at(0), end=at(60))

        assert timeline.elapsed_percent(at(-10)) == 0
        assert timeline.elapsed_percent(at(30)) == 50
        assert timeline.elapsed_percent(at(90)) == 100

    def test_session_without_cash_out(self):
        """Test a session needs a buy-in and a cash-out to be analyzed."""
        ledger = scripted_session([(0, "join", ("x",))])
        assert session_timeline(ledger.transactions) is None

    def test_zero_length_session(self):
        ledger = scripted_session([(0, "join", ("x",)), (0, "cash_out", ("x", 10))])
        assert session_timeline(ledger.transactions) is None


class TestBurstRebuys:
    """Test burst detection."""

    def test_no_rebuys(self):
        assert count_burst_rebuys([]) == 0
        assert count_burst_rebuys([at(0)]) == 0

    def test_pair_is_a_burst(self):
        assert count_burst_rebuys([at(0), at(15)]) == 2

    def test_gap_breaks_burst(self):
        assert count_burst_rebuys([at(0), at(16)]) == 0

    def test_two_bursts(self):
        assert count_burst_rebuys([at(0), at(5), at(60), at(70), at(75)]) == 5


class TestAnalyzeTiming:
    """Test per-player timing metrics."""

    def test_tilt_rate(self):
        """Test 3 rebuys 10 minutes apart and 1 isolated rebuy give a 75% tilt rate."""
        ledger = scripted_session([
            (0, "join", ("x", PlayerType.TEAM)),
            (0, "join", ("y", PlayerType.TEAM)),
            (10, "buy_in", ("x",)),
            (20, "buy_in", ("x",)),
            (30, "buy_in", ("x",)),
            (70, "buy_in", ("x",)),
            (120, "cash_out", ("x", 0)),
            (120, "cash_out", ("y", 48)),
        ])

        x = timing_for(analyze_buy_in_timing([ledger], [X, Y]), "x")

        assert x["total_rebuys"] == 4
        assert x["tilt"] == {"burst_rebuys": 3, "tilt_rate": 75}
        assert x["early_late"] == {"early": 3, "late": 1, "late_percent": 25}

    def test_tilt_needs_enough_rebuys(self):
        ledger = scripted_session([
            (0, "join", ("x",)),
            (5, "buy_in", ("x",)),
            (10, "buy_in", ("x",)),
            (60, "cash_out", ("x", 0)),
        ])

        x = timing_for(analyze_buy_in_timing([ledger], [X]), "x")

        assert x["tilt"] is None
        assert x["velocity"] is None
        assert x["quarter_heatmap"] is None

    def test_multi_session_metrics(self):
        """Test metrics that need several sessions of data."""
        sessions = [
            scripted_session([
                (0, "join", ("x",)),
                (100, "buy_in", ("x",)),
                (110, "buy_in", ("x",)),
                (120, "cash_out", ("x", 30)),
            ], day_offset=day)
            for day in range(3)
        ]

        x = timing_for(analyze_buy_in_timing(sessions, [X]), "x")

        assert x["sessions_analyzed"] == 3
        assert x["velocity"] == {"rebuys_per_hour": 1.0, "sessions": 3}
        assert x["first_rebuy"] == {"avg_minutes": 100.0, "sessions": 3, "survival_rate": 0}
        assert x["quarter_heatmap"] == [1.0, 0.0, 0.0, 2.0]
        assert x["late_night_index"] == 4.0

    def test_sell_timing(self):
        ledger = scripted_session([
            (0, "join", ("x",)),
            (0, "join", ("y",)),
            (30, "sell", ("x", "y")),
            (90, "sell", ("x", "y")),
            (120, "cash_out", ("x", 0)),
            (120, "cash_out", ("y", 40)),
        ])

        result = analyze_buy_in_timing([ledger], [X, Y])

        assert timing_for(result, "x")["sell_timing"] == {
            "sold": 2, "bought": 0, "avg_sell_percent": 50, "avg_buy_percent": None,
        }
        assert timing_for(result, "y")["sell_timing"]["bought"] == 2

    def test_only_team_members_reported(self):
        ledger = scripted_session([
            (0, "join", ("x",)),
            (0, "join", ("guest",)),
            (60, "cash_out", ("x", 10)),
            (60, "cash_out", ("guest", 10)),
        ])

        result = analyze_buy_in_timing([ledger], [X])

        assert [r["user_id"] for r in result] == ["x"]
