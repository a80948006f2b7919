"""Calculate player standings (+/-) for a session."""
from dataclasses import dataclass
from typing import Optional

from pokernight.ledger import chips
from pokernight.ledger.session import SessionLedger


@dataclass
class PlayerStanding:
    """A player's standing in the session."""
    user_id: str
    player: str
    buy_ins: int
    chips_sold: int
    cash_out: Optional[int]
    net: int
    
    @property
    def is_settled(self) -> bool:
        return self.cash_out is not None
    
    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "player": self.player,
            "buy_ins": self.buy_ins,
            "chips_sold": self.chips_sold,
            "cash_out": self.cash_out,
            "net": self.net,
        }


def calculate_standings(ledger: SessionLedger) -> list[PlayerStanding]:
    """Calculate standings for all players in a session.
    
    Players still at the table count as having cashed out nothing so far.
    
    Args:
        ledger: The session aggregate.
        
    Returns:
        List of player standings sorted by net (descending).
    """
    standings = [
        PlayerStanding(
            user_id=entry.user_id,
            player=entry.player_name,
            buy_ins=entry.buy_in_total,
            chips_sold=entry.chips_sold,
            cash_out=entry.cash_out,
            net=chips.net_result(entry.buy_in_count, entry.cash_out, entry.chips_sold),
        )
        for entry in ledger.players
    ]
    standings.sort(key=lambda s: s.net, reverse=True)
    return standings


def format_standings_table(standings: list[PlayerStanding]) -> str:
    """Format standings as a text table.
    
    Args:
        standings: List of player standings.
        
    Returns:
        Formatted table string.
    """
    if not standings:
        return "No players in this session."
    
    lines = [
        "| Player     | Buy-ins | Sold | Cash-out | Net (+/-) |",
        "|------------|---------|------|----------|-----------|",
    ]
    
    for s in standings:
        net_str = f"+{s.net}" if s.net >= 0 else str(s.net)
        cash_str = str(s.cash_out) if s.is_settled else "-"
        lines.append(
            f"| {s.player:<10} | {s.buy_ins:>7} | {s.chips_sold:>4} | {cash_str:>8} | {net_str:>9} |"
        )
    
    return "\n".join(lines)
