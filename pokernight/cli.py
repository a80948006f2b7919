#!/usr/bin/env python3
"""CLI tool for poker night administration."""
import asyncio
import sys
from datetime import datetime, timezone
from typing import Optional

from pokernight.admin.standings import calculate_standings, format_standings_table
from pokernight.auth.jwt_handler import create_access_token
from pokernight.auth.roles import Role
from pokernight.db.connection import db
from pokernight.db.models import init_db
from pokernight.ledger.errors import LedgerError
from pokernight.ledger.models import PlayerType
from pokernight.state.session_store import session_store
from pokernight.state.special_hand_store import special_hand_store
from pokernight.state.user_store import user_store
from pokernight.stats.engine import build_report


async def _run(command) -> None:
    """Run a command against the database, reporting domain errors."""
    await db.connect()
    try:
        await command()
    except LedgerError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
    finally:
        await db.disconnect()


async def list_users():
    """List all users."""
    users = await user_store.list_users()
    if not users:
        print("No users found.")
        return

    print(f"\n{'Name':<20} {'Role':<8} {'Type':<6} {'ID':<36} {'Created'}")
    print("-" * 90)
    for u in users:
        created = u.created_at.strftime('%Y-%m-%d %H:%M') if u.created_at else 'N/A'
        print(f"{u.name:<20} {u.role.value:<8} {u.player_type.value:<6} {u.id:<36} {created}")
    print(f"\nTotal: {len(users)} users")


async def add_user(name: str, email: Optional[str], team: bool):
    """Create a user."""
    player_type = PlayerType.TEAM if team else PlayerType.GUEST
    user = await user_store.create_user(name, email, player_type=player_type)
    print(f"Success: created {user.name} ({user.player_type.value}) with ID {user.id}")


async def set_role(name: str, role: Role):
    """Promote or demote a user."""
    user = await user_store.find_user(name)
    await user_store.update_role(user.id, role)
    print(f"Success: '{user.name}' is now {'an admin' if role == Role.ADMIN else 'a regular player'}.")


async def set_player_type(name: str, player_type: PlayerType):
    """Mark a user as a team player or a guest."""
    user = await user_store.find_user(name)
    await user_store.update_player_type(user.id, player_type)
    print(f"Success: '{user.name}' is now a {player_type.value.lower()} player.")


async def issue_token(name: str):
    """Print an access token for a user."""
    user = await user_store.find_user(name)
    print(create_access_token(user.id, user.name, user.role))


async def list_sessions(year: Optional[int]):
    """List sessions, newest first."""
    sessions = await session_store.list_sessions(year=year, include_archived=True)
    if not sessions:
        print("No sessions found.")
        return

    print(f"\n{'Date':<12} {'Status':<8} {'Pot':>6} {'Players':>8}  {'Host':<15} {'ID'}")
    print("-" * 90)
    for s in sessions:
        status = s["status"] + ("*" if s["is_archived"] else "")
        print(
            f"{s['date'][:10]:<12} {status:<8} {s['total_pot']:>6} {s['player_count']:>8}  "
            f"{s['host']:<15} {s['id']}"
        )
    print(f"\nTotal: {len(sessions)} sessions (* archived)")


async def show_standings(session_id: str):
    """Print standings for a session."""
    ledger = await session_store.get(session_id)
    print(f"\nSession {ledger.id} ({ledger.session.date.date().isoformat()}, {ledger.session.status.value})\n")
    print(format_standings_table(calculate_standings(ledger)))
    balance = ledger.balance()
    print(f"\nPiggy bank: ${balance.piggy_bank_amount}  Difference: ${balance.difference}")


async def show_piggy_bank(year: Optional[int]):
    """Print the piggy-bank total."""
    total = await session_store.piggy_bank_total(year)
    scope = str(year) if year else "all years"
    print(f"Piggy bank ({scope}): ${total}")


async def show_stats(year: int):
    """Print the player table of a year's statistics."""
    sessions = await session_store.load_closed_for_year(year)
    members = await user_store.list_team_members()
    hands = await special_hand_store.list_for_year(year)
    report = build_report(year, sessions, members, hands)

    print(f"\n{year}: {report['total_sessions']} sessions, piggy bank ${report['piggy_bank_total']}\n")
    print(f"{'Player':<20} {'Net':>7} {'Played':>7} {'Attend%':>8} {'Win%':>6} {'Best':>6} {'Worst':>6}")
    print("-" * 66)
    for p in report["player_stats"]:
        print(
            f"{p['player']:<20} {p['net_gain_loss']:>+7} {p['sessions_played']:>7} "
            f"{p['attendance_rate']:>8.0f} {p['win_rate']:>6.0f} {p['biggest_win']:>6} {p['biggest_loss']:>6}"
        )
    if report["asterisk_leaderboard"]:
        leader = report["asterisk_leaderboard"][0]
        print(f"\nAsterisk leader: {leader['player']} ({leader['total_asterisks']})")


def print_usage():
    """Print usage information."""
    print("""
Poker Night CLI

Usage:
  python -m pokernight.cli <command> [args]

Commands:
  init                          Create or migrate the database schema
  list                          List all users
  add <name> [email] [--team]   Create a user (guest unless --team)
  promote <name>                Promote user to admin
  demote <name>                 Demote user to player
  team <name>                   Count user as a team player
  guest <name>                  Count user as a guest
  token <name>                  Issue an access token for a user
  sessions [year]               List sessions
  standings <session_id>        Show standings for a session
  piggy [year]                  Piggy-bank total
  stats [year]                  Yearly player statistics

Examples:
  python -m pokernight.cli add alice alice@example.com --team
  python -m pokernight.cli promote alice
  python -m pokernight.cli stats 2024
""")


def _year_arg(position: int) -> Optional[int]:
    if len(sys.argv) <= position:
        return None
    try:
        return int(sys.argv[position])
    except ValueError:
        print(f"Error: invalid year '{sys.argv[position]}'.")
        sys.exit(1)


def _require_arg(command: str, what: str) -> str:
    if len(sys.argv) < 3:
        print(f"Error: {what} required.")
        print(f"Usage: python -m pokernight.cli {command} <{what.lower().replace(' ', '_')}>")
        sys.exit(1)
    return sys.argv[2]


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1].lower()

    if command == "init":
        asyncio.run(_run(init_db))

    elif command == "list":
        asyncio.run(_run(list_users))

    elif command == "add":
        name = _require_arg(command, "Name")
        extra = sys.argv[3:]
        team = "--team" in extra
        emails = [a for a in extra if a != "--team"]
        asyncio.run(_run(lambda: add_user(name, emails[0] if emails else None, team)))

    elif command in ("promote", "demote"):
        name = _require_arg(command, "Name")
        role = Role.ADMIN if command == "promote" else Role.PLAYER
        asyncio.run(_run(lambda: set_role(name, role)))

    elif command in ("team", "guest"):
        name = _require_arg(command, "Name")
        player_type = PlayerType.TEAM if command == "team" else PlayerType.GUEST
        asyncio.run(_run(lambda: set_player_type(name, player_type)))

    elif command == "token":
        name = _require_arg(command, "Name")
        asyncio.run(_run(lambda: issue_token(name)))

    elif command == "sessions":
        year = _year_arg(2)
        asyncio.run(_run(lambda: list_sessions(year)))

    elif command == "standings":
        session_id = _require_arg(command, "Session ID")
        asyncio.run(_run(lambda: show_standings(session_id)))

    elif command == "piggy":
        year = _year_arg(2)
        asyncio.run(_run(lambda: show_piggy_bank(year)))

    elif command == "stats":
        year = _year_arg(2) or datetime.now(timezone.utc).year
        asyncio.run(_run(lambda: show_stats(year)))

    elif command in ("help", "-h", "--help"):
        print_usage()

    else:
        print(f"Unknown command: {command}")
        print_usage()
        sys.exit(1)


if __name__ == "__main__":
    main()
