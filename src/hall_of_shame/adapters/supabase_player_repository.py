"""Supabase-backed player repository."""

from dataclasses import dataclass

from supabase import Client

from hall_of_shame.adapters.supabase_support import execute, parse_timestamp
from hall_of_shame.domain.errors import StoreUnavailable
from hall_of_shame.domain.models import Player
from hall_of_shame.services.sessions import PlayerRepository


@dataclass
class SupabasePlayerRepository(PlayerRepository):
    """Supabase implementation for players, keyed by their stable id."""

    client: Client

    def upsert_player(self, player: Player) -> Player:
        """Create or replace the player row."""
        rows = execute(
            self.client.table("players").upsert(
                {
                    "id": player.id,
                    "nickname": player.nickname,
                    "session_code": player.session_code,
                    "joined_at": player.joined_at.isoformat(),
                    "is_active": player.is_active,
                },
                on_conflict="id",
            ),
            "save player",
        )
        if not rows:
            raise StoreUnavailable("Failed to save player")
        return _parse_player(rows[0])

    def get_player(self, player_id: str) -> Player | None:
        """Return a player by id, if present."""
        rows = execute(
            self.client.table("players").select("*").eq("id", player_id).limit(1),
            "load player",
        )
        return _parse_player(rows[0]) if rows else None

    def list_players(self, session_code: str) -> list[Player]:
        """Return a session's players in join order."""
        rows = execute(
            self.client.table("players")
            .select("*")
            .eq("session_code", session_code)
            .order("joined_at", desc=False),
            "list players",
        )
        players = [_parse_player(row) for row in rows]
        return sorted(players, key=lambda player: player.joined_at)

    def set_active(self, player_id: str, is_active: bool) -> None:
        """Update the player's active flag."""
        execute(
            self.client.table("players")
            .update({"is_active": is_active})
            .eq("id", player_id),
            "update player",
        )


def _parse_player(row: dict[str, object]) -> Player:
    joined_at = parse_timestamp(row.get("joined_at"))
    if joined_at is None:
        raise StoreUnavailable("Player row is missing joined_at")
    return Player(
        id=str(row["id"]),
        nickname=str(row["nickname"]),
        session_code=str(row["session_code"]),
        joined_at=joined_at,
        is_active=bool(row.get("is_active", True)),
    )
