"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from hall_of_shame.adapters.supabase_support import (
    execute,
    format_timestamp,
    parse_timestamp,
)
from hall_of_shame.domain.errors import StoreUnavailable
from hall_of_shame.domain.models import Session, SessionStatus, TieBreakResult
from hall_of_shame.services.sessions import SessionRepository

_COLUMNS = (
    "id, code, host_id, status, created_at, current_round_id, round_end_time, "
    "tie_break_json"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for game sessions."""

    client: Client

    def create_session(self, code: str, host_id: str, created_at: datetime) -> Session:
        """Create a session row in the lobby and return it."""
        rows = execute(
            self.client.table("sessions").insert(
                {
                    "code": code,
                    "host_id": host_id,
                    "status": SessionStatus.LOBBY.value,
                    "created_at": created_at.isoformat(),
                    "current_round_id": None,
                    "round_end_time": None,
                }
            ),
            "create session",
        )
        if not rows:
            raise StoreUnavailable("Failed to create session")
        return _parse_session(rows[0])

    def get_session(self, session_id: UUID) -> Session | None:
        """Return a session by id, if present."""
        rows = execute(
            self.client.table("sessions")
            .select(_COLUMNS)
            .eq("id", str(session_id))
            .limit(1),
            "load session",
        )
        return _parse_session(rows[0]) if rows else None

    def get_by_code(self, code: str) -> Session | None:
        """Return the newest session holding a room code."""
        rows = execute(
            self.client.table("sessions")
            .select(_COLUMNS)
            .eq("code", code.upper())
            .order("created_at", desc=True)
            .limit(1),
            "find session",
        )
        return _parse_session(rows[0]) if rows else None

    def code_in_use(self, code: str) -> bool:
        """Return whether a session that has not ended holds this code."""
        rows = execute(
            self.client.table("sessions")
            .select("id")
            .eq("code", code.upper())
            .neq("status", SessionStatus.ENDED.value)
            .limit(1),
            "check room code",
        )
        return bool(rows)

    def compare_and_set_status(  # noqa: PLR0913
        self,
        session_id: UUID,
        expected: SessionStatus,
        status: SessionStatus,
        current_round_id: UUID | None,
        round_end_time: datetime | None,
        expected_round_id: UUID | None = None,
    ) -> bool:
        """Update status guarded by the expected status; True if a row changed."""
        query = (
            self.client.table("sessions")
            .update(
                {
                    "status": status.value,
                    "current_round_id": (
                        str(current_round_id) if current_round_id else None
                    ),
                    "round_end_time": format_timestamp(round_end_time),
                }
            )
            .eq("id", str(session_id))
            .eq("status", expected.value)
        )
        if expected_round_id is not None:
            query = query.eq("current_round_id", str(expected_round_id))
        return bool(execute(query, "update session status"))

    def set_tie_break_if_absent(self, session_id: UUID, result: TieBreakResult) -> bool:
        """Store the tie-break unless one exists; True if this call stored it."""
        rows = execute(
            self.client.table("sessions")
            .update({"tie_break_json": _dump_tie_break(result)})
            .eq("id", str(session_id))
            .is_("tie_break_json", "null"),
            "store tie-break",
        )
        return bool(rows)


def _parse_session(row: dict[str, object]) -> Session:
    created_at = parse_timestamp(row.get("created_at"))
    if created_at is None:
        raise StoreUnavailable("Session row is missing created_at")
    round_id = row.get("current_round_id")
    tie_break = row.get("tie_break_json")
    return Session(
        id=UUID(str(row["id"])),
        code=str(row["code"]),
        host_id=str(row["host_id"]),
        status=SessionStatus(row["status"]),
        created_at=created_at,
        current_round_id=UUID(str(round_id)) if round_id else None,
        round_end_time=parse_timestamp(row.get("round_end_time")),
        tie_break=_load_tie_break(tie_break) if isinstance(tie_break, dict) else None,
    )


def _dump_tie_break(result: TieBreakResult) -> dict[str, object]:
    return {
        "winner_id": result.winner_id,
        "winner_index": result.winner_index,
        "candidate_ids": list(result.candidate_ids),
        "drawn_by": result.drawn_by,
        "drawn_at": format_timestamp(result.drawn_at),
    }


def _load_tie_break(payload: dict[str, object]) -> TieBreakResult:
    candidates = payload.get("candidate_ids") or []
    drawn_by = payload.get("drawn_by")
    return TieBreakResult(
        winner_id=str(payload["winner_id"]),
        winner_index=int(payload["winner_index"]),
        candidate_ids=tuple(str(candidate) for candidate in candidates),
        drawn_by=str(drawn_by) if drawn_by else None,
        drawn_at=parse_timestamp(payload.get("drawn_at")),
    )
