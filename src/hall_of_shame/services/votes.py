"""Exactly-once vote recording."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from hall_of_shame.domain.errors import (
    DuplicateVote,
    InvalidReason,
    InvalidTarget,
    UnknownPlayer,
)
from hall_of_shame.domain.models import Player, Vote, VoteReason

_logger = logging.getLogger(__name__)


class VoteRepository(Protocol):
    """Persistence interface for votes."""

    def insert_vote_if_absent(self, vote: Vote) -> bool:
        """Store a vote keyed by (round, voter); return False if one existed."""

    def get_vote(self, round_id: UUID, voter_id: str) -> Vote | None:
        """Return the vote for a (round, voter) pair, if present."""

    def list_votes_for_round(self, round_id: UUID) -> list[Vote]:
        """Return all votes cast in a round."""

    def list_votes_for_session(self, session_code: str) -> list[Vote]:
        """Return all votes cast in any round of a session."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class VoteStore:
    """Records at most one vote per (round, voter); the first write wins."""

    repository: VoteRepository
    clock: Callable[[], datetime] = _utcnow

    def record_vote(  # noqa: PLR0913
        self,
        round_id: UUID,
        voter_id: str,
        target_id: str,
        reason: str,
        roster: Sequence[Player],
        session_code: str,
    ) -> Vote:
        """Validate and store a vote."""
        parsed_reason = parse_reason(reason)
        active_ids = {player.id for player in roster if player.is_active}
        if voter_id not in active_ids:
            raise UnknownPlayer(f"Player {voter_id} is not in the roster")
        if target_id not in active_ids:
            raise InvalidTarget(f"Player {target_id} is not in the roster")
        if self.repository.get_vote(round_id, voter_id) is not None:
            raise DuplicateVote(f"Player {voter_id} already voted this round")

        vote = Vote(
            round_id=round_id,
            voter_id=voter_id,
            target_id=target_id,
            reason=parsed_reason,
            session_code=session_code,
            timestamp=self.clock(),
        )
        if not self.repository.insert_vote_if_absent(vote):
            raise DuplicateVote(f"Player {voter_id} already voted this round")
        _logger.info(
            "Vote recorded: round=%s voter=%s target=%s", round_id, voter_id, target_id
        )
        return vote

    def votes_for_round(self, round_id: UUID) -> list[Vote]:
        """Return the known votes of a round."""
        return self.repository.list_votes_for_round(round_id)

    def votes_for_session(self, session_code: str) -> list[Vote]:
        """Return the known votes across every round of a session."""
        return self.repository.list_votes_for_session(session_code)


def parse_reason(reason: str) -> VoteReason:
    """Return the matching reason or raise ``InvalidReason``."""
    try:
        return VoteReason(reason)
    except ValueError:
        raise InvalidReason(f"Unknown vote reason: {reason!r}") from None
