"""Supabase-backed vote repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from hall_of_shame.adapters.supabase_support import execute, parse_timestamp
from hall_of_shame.domain.models import Vote, VoteReason, vote_key
from hall_of_shame.services.votes import VoteRepository


@dataclass
class SupabaseVoteRepository(VoteRepository):
    """Votes keyed by ``<round_id>:<voter_id>`` so duplicates collapse."""

    client: Client

    def insert_vote_if_absent(self, vote: Vote) -> bool:
        """Insert the vote; an existing row for the same key is kept."""
        rows = execute(
            self.client.table("votes").upsert(
                {
                    "id": vote.id,
                    "round_id": str(vote.round_id),
                    "voter_id": vote.voter_id,
                    "target_id": vote.target_id,
                    "reason": vote.reason.value,
                    "session_code": vote.session_code,
                    "timestamp": vote.timestamp.isoformat(),
                },
                on_conflict="id",
                ignore_duplicates=True,
            ),
            "record vote",
        )
        return bool(rows)

    def get_vote(self, round_id: UUID, voter_id: str) -> Vote | None:
        """Return the vote for (round, voter), if present."""
        rows = execute(
            self.client.table("votes")
            .select("*")
            .eq("id", vote_key(round_id, voter_id))
            .limit(1),
            "load vote",
        )
        return _parse_vote(rows[0]) if rows else None

    def list_votes_for_round(self, round_id: UUID) -> list[Vote]:
        """Return every vote of a round."""
        rows = execute(
            self.client.table("votes").select("*").eq("round_id", str(round_id)),
            "list round votes",
        )
        return [_parse_vote(row) for row in rows]

    def list_votes_for_session(self, session_code: str) -> list[Vote]:
        """Return every vote of a session."""
        rows = execute(
            self.client.table("votes").select("*").eq("session_code", session_code),
            "list session votes",
        )
        return [_parse_vote(row) for row in rows]


def _parse_vote(row: dict[str, object]) -> Vote:
    return Vote(
        round_id=UUID(str(row["round_id"])),
        voter_id=str(row["voter_id"]),
        target_id=str(row["target_id"]),
        reason=VoteReason(row["reason"]),
        session_code=str(row.get("session_code") or ""),
        timestamp=parse_timestamp(row.get("timestamp")) or datetime.now(tz=UTC),
    )
