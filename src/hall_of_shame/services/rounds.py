"""Round lifecycle: open, collect votes, close."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from hall_of_shame.domain.errors import RoundClosed, StaleTransition, Unauthorized
from hall_of_shame.domain.models import (
    CloseReason,
    Player,
    Round,
    RoundState,
    Session,
    Vote,
)
from hall_of_shame.domain.tally import TallyEntry, tally
from hall_of_shame.domain.transitions import SessionEvent, can_apply, next_status

if TYPE_CHECKING:
    from hall_of_shame.services.sessions import SessionRepository
    from hall_of_shame.services.votes import VoteStore

ROUND_DURATION_SECONDS = 60

_logger = logging.getLogger(__name__)


class RoundRepository(Protocol):
    """Persistence interface for rounds."""

    def create_round(
        self, session_code: str, created_at: datetime, end_time: datetime
    ) -> Round:
        """Create a round and return it."""

    def get_round(self, round_id: UUID) -> Round | None:
        """Return a round by id, if present."""

    def latest_round(self, session_code: str) -> Round | None:
        """Return the most recently created round of a session."""

    def close_round_if_open(
        self, round_id: UUID, closed_at: datetime, reason: CloseReason
    ) -> bool:
        """Close a round unless already closed; return whether this call closed it."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def all_voted(votes: Sequence[Vote], roster: Sequence[Player]) -> bool:
    """Return whether every active roster member has voted."""
    active = [player for player in roster if player.is_active]
    voters = {vote.voter_id for vote in votes}
    return bool(active) and len(voters) >= len(active)


def close_reason_for(
    round_: Round, votes: Sequence[Vote], roster: Sequence[Player], now: datetime
) -> CloseReason | None:
    """Return why a collecting round should close now, or None."""
    if round_.state is RoundState.CLOSED:
        return None
    if all_voted(votes, roster):
        return CloseReason.ALL_VOTED
    if round_.is_expired(now):
        return CloseReason.TIMEOUT
    return None


@dataclass
class RoundController:
    """Owns round creation, vote intake and the close decision."""

    round_repository: RoundRepository
    session_repository: SessionRepository
    vote_store: VoteStore
    duration_seconds: int = ROUND_DURATION_SECONDS
    clock: Callable[[], datetime] = _utcnow

    def open_round(self, session: Session) -> Round:
        """Create a round and move the session into VOTING."""
        status = next_status(session.status, SessionEvent.START_VOTING)
        now = self.clock()
        end_time = now + timedelta(seconds=self.duration_seconds)
        round_ = self.round_repository.create_round(
            session_code=session.code, created_at=now, end_time=end_time
        )
        updated = self.session_repository.compare_and_set_status(
            session.id,
            expected=session.status,
            status=status,
            current_round_id=round_.id,
            round_end_time=end_time,
        )
        if not updated:
            # The orphaned round is never referenced and so never collects votes.
            raise StaleTransition(f"Session {session.code} changed before voting began")
        _logger.info("Round opened: session=%s round=%s", session.code, round_.id)
        return round_

    def submit_vote(
        self,
        round_: Round,
        voter_id: str,
        target_id: str,
        reason: str,
        roster: Sequence[Player],
    ) -> Vote:
        """Record a vote while the round is collecting."""
        if round_.state is RoundState.CLOSED:
            raise RoundClosed(f"Round {round_.id} is not accepting votes")
        return self.vote_store.record_vote(
            round_id=round_.id,
            voter_id=voter_id,
            target_id=target_id,
            reason=reason,
            roster=roster,
            session_code=round_.session_code,
        )

    def running_tally(
        self, round_: Round, roster: Sequence[Player]
    ) -> list[TallyEntry]:
        """Return the current tally of a round."""
        return tally(self.vote_store.votes_for_round(round_.id), roster)

    def close_if_eligible(
        self,
        round_: Round,
        roster: Sequence[Player],
        votes: Sequence[Vote],
        is_host: bool,
    ) -> bool:
        """Close the round when everyone voted or time ran out.

        Only the host performs the closing writes. Returns whether this call
        changed anything. For a round that is already closed, only the session
        move to FINISHED is retried, so a close interrupted between its two
        writes can be completed by ticking again.
        """
        if not is_host:
            return False
        if round_.state is RoundState.CLOSED:
            return self._finish_session(round_)
        reason = close_reason_for(round_, votes, roster, self.clock())
        if reason is None:
            return False
        return self._close(round_, reason)

    def force_close(self, round_: Round, is_host: bool) -> bool:
        """Close the round immediately on the host's request."""
        if not is_host:
            raise Unauthorized("Only the host can close a round")
        if round_.state is RoundState.CLOSED:
            return self._finish_session(round_)
        return self._close(round_, CloseReason.FORCED)

    def _close(self, round_: Round, reason: CloseReason) -> bool:
        closed = self.round_repository.close_round_if_open(
            round_.id, closed_at=self.clock(), reason=reason
        )
        if closed:
            _logger.info(
                "Round closed: session=%s round=%s reason=%s",
                round_.session_code,
                round_.id,
                reason.value,
            )
        finished = self._finish_session(round_)
        return closed or finished

    def _finish_session(self, round_: Round) -> bool:
        """Move the session off a closed round; safe to repeat after a failure."""
        session = self.session_repository.get_by_code(round_.session_code)
        if (
            session is None
            or session.current_round_id != round_.id
            or not can_apply(session.status, SessionEvent.CLOSE_ROUND)
        ):
            return False
        status = next_status(session.status, SessionEvent.CLOSE_ROUND)
        finished = self.session_repository.compare_and_set_status(
            session.id,
            expected=session.status,
            status=status,
            current_round_id=round_.id,
            round_end_time=session.round_end_time,
            expected_round_id=round_.id,
        )
        if finished:
            _logger.info(
                "Session finished round: session=%s round=%s", session.code, round_.id
            )
        return finished
