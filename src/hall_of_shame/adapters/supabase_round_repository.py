"""Supabase-backed round repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from hall_of_shame.adapters.supabase_support import execute, parse_timestamp
from hall_of_shame.domain.errors import StoreUnavailable
from hall_of_shame.domain.models import CloseReason, Round
from hall_of_shame.services.rounds import RoundRepository


@dataclass
class SupabaseRoundRepository(RoundRepository):
    """Supabase implementation for rounds."""

    client: Client

    def create_round(
        self, session_code: str, created_at: datetime, end_time: datetime
    ) -> Round:
        """Create a round row and return it."""
        rows = execute(
            self.client.table("rounds").insert(
                {
                    "session_code": session_code,
                    "created_at": created_at.isoformat(),
                    "end_time": end_time.isoformat(),
                }
            ),
            "create round",
        )
        if not rows:
            raise StoreUnavailable("Failed to create round")
        return _parse_round(rows[0])

    def get_round(self, round_id: UUID) -> Round | None:
        """Return a round by id, if present."""
        rows = execute(
            self.client.table("rounds").select("*").eq("id", str(round_id)).limit(1),
            "load round",
        )
        return _parse_round(rows[0]) if rows else None

    def latest_round(self, session_code: str) -> Round | None:
        """Return the newest round of a session."""
        rows = execute(
            self.client.table("rounds")
            .select("*")
            .eq("session_code", session_code)
            .order("created_at", desc=True)
            .limit(1),
            "load latest round",
        )
        return _parse_round(rows[0]) if rows else None

    def close_round_if_open(
        self, round_id: UUID, closed_at: datetime, reason: CloseReason
    ) -> bool:
        """Close the round guarded by ``closed_at IS NULL``."""
        rows = execute(
            self.client.table("rounds")
            .update({"closed_at": closed_at.isoformat(), "close_reason": reason.value})
            .eq("id", str(round_id))
            .is_("closed_at", "null"),
            "close round",
        )
        return bool(rows)


def _parse_round(row: dict[str, object]) -> Round:
    created_at = parse_timestamp(row.get("created_at"))
    end_time = parse_timestamp(row.get("end_time"))
    if created_at is None or end_time is None:
        raise StoreUnavailable("Round row is missing timestamps")
    reason = row.get("close_reason")
    return Round(
        id=UUID(str(row["id"])),
        session_code=str(row["session_code"]),
        created_at=created_at,
        end_time=end_time,
        closed_at=parse_timestamp(row.get("closed_at")),
        close_reason=CloseReason(reason) if reason else None,
    )
