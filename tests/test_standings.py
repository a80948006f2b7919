"""Tests for session standings."""
from pokernight.admin.standings import PlayerStanding, calculate_standings, format_standings_table
from pokernight.ledger import chips

BUY_IN = chips.BUY_IN_AMOUNT


class TestStandings:
    """Test standings calculation and formatting."""

    def test_calculate_standings(self, ledger):
        """Test standings are sorted by net and count sold chips."""
        ledger.join("a", player_name="alice")
        ledger.join("b", player_name="bob")
        ledger.sell("a", "b")
        ledger.cash_out("b", 3 * BUY_IN)

        standings = calculate_standings(ledger)

        assert [s.player for s in standings] == ["bob", "alice"]
        bob, alice = standings
        assert bob.net == BUY_IN
        assert alice.chips_sold == BUY_IN
        assert alice.cash_out is None
        assert alice.net == 0

    def test_standing_to_dict(self):
        standing = PlayerStanding("u1", "alice", 20, 10, 5, -5)

        data = standing.to_dict()

        assert data["player"] == "alice"
        assert data["chips_sold"] == 10
        assert data["net"] == -5

    def test_format_standings_table_empty(self):
        assert format_standings_table([]) == "No players in this session."

    def test_format_standings_table(self):
        standings = [
            PlayerStanding("1", "alice", 20, 0, 45, 25),
            PlayerStanding("2", "bob", 30, 0, None, -30),
        ]

        result = format_standings_table(standings)

        assert "alice" in result
        assert "+25" in result
        assert "-30" in result
        # Unsettled players show no cash-out
        assert "|        - |" in result
