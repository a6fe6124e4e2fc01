"""Session state machine: lobby, voting rounds, final verdict."""

import logging
import random
import string
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from hall_of_shame.domain.errors import (
    InvalidNickname,
    NoTieToResolve,
    RoundClosed,
    SessionClosed,
    SessionCodeUnavailable,
    SessionNotFound,
    StaleTransition,
    Unauthorized,
    UnknownPlayer,
)
from hall_of_shame.domain.models import (
    NICKNAME_MAX_LENGTH,
    ROOM_CODE_LENGTH,
    Player,
    Round,
    Session,
    SessionStatus,
    TieBreakResult,
    Vote,
    normalize_code,
)
from hall_of_shame.domain.tally import tally
from hall_of_shame.domain.transitions import SessionEvent, next_status
from hall_of_shame.domain.verdict import FinalVerdict, VerdictKind, build_verdict
from hall_of_shame.services.rounds import RoundController
from hall_of_shame.services.sync import SessionSnapshot
from hall_of_shame.services.tiebreak import TieResolver

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_GENERATION_ATTEMPTS = 5

_logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for sessions."""

    def create_session(self, code: str, host_id: str, created_at: datetime) -> Session:
        """Create a session in the lobby and return it."""

    def get_session(self, session_id: UUID) -> Session | None:
        """Return a session by id, if present."""

    def get_by_code(self, code: str) -> Session | None:
        """Return the most recent session with this room code, if present."""

    def code_in_use(self, code: str) -> bool:
        """Return whether a session that has not ended holds this code."""

    def compare_and_set_status(  # noqa: PLR0913
        self,
        session_id: UUID,
        expected: SessionStatus,
        status: SessionStatus,
        current_round_id: UUID | None,
        round_end_time: datetime | None,
        expected_round_id: UUID | None = None,
    ) -> bool:
        """Update status only if it still equals ``expected``."""

    def set_tie_break_if_absent(self, session_id: UUID, result: TieBreakResult) -> bool:
        """Persist a tie-break result unless one is already stored."""


class PlayerRepository(Protocol):
    """Persistence interface for players."""

    def upsert_player(self, player: Player) -> Player:
        """Create or replace a player keyed by id."""

    def get_player(self, player_id: str) -> Player | None:
        """Return a player by id, if present."""

    def list_players(self, session_code: str) -> list[Player]:
        """Return the players of a session ordered by join time."""

    def set_active(self, player_id: str, is_active: bool) -> None:
        """Mark a player active or inactive."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def generate_code(rng: random.Random | None = None) -> str:
    """Generate a four character room code."""
    chooser = rng or random
    return "".join(chooser.choices(CODE_ALPHABET, k=ROOM_CODE_LENGTH))


def validate_nickname(nickname: str) -> str:
    """Return the trimmed nickname or raise ``InvalidNickname``."""
    cleaned = nickname.strip()
    if not cleaned or len(cleaned) > NICKNAME_MAX_LENGTH:
        raise InvalidNickname(
            f"Nickname must be 1 to {NICKNAME_MAX_LENGTH} characters long"
        )
    return cleaned


@dataclass
class SessionController:
    """Orchestrates sessions, their rounds and the final verdict."""

    session_repository: SessionRepository
    player_repository: PlayerRepository
    round_controller: RoundController
    tie_resolver: TieResolver
    code_attempts: int = CODE_GENERATION_ATTEMPTS
    code_generator: Callable[[], str] = generate_code
    clock: Callable[[], datetime] = _utcnow

    def create_session(self, player_id: str, nickname: str) -> tuple[Session, Player]:
        """Create a session hosted by ``player_id`` and add the host to it."""
        cleaned = validate_nickname(nickname)
        code = self._free_code()
        now = self.clock()
        session = self.session_repository.create_session(
            code=code, host_id=player_id, created_at=now
        )
        player = self.player_repository.upsert_player(
            Player(id=player_id, nickname=cleaned, session_code=code, joined_at=now)
        )
        _logger.info("Session created: code=%s host=%s", code, player_id)
        return session, player

    def join_session(
        self, code: str, player_id: str, nickname: str
    ) -> tuple[Session, Player]:
        """Add a player to the session with this room code."""
        cleaned = validate_nickname(nickname)
        session = self.get_session(code)
        if session.status is SessionStatus.ENDED:
            raise SessionClosed(f"Session {session.code} has ended")

        existing = self.player_repository.get_player(player_id)
        if existing and existing.session_code == session.code:
            player = replace(existing, is_active=True)
        else:
            player = Player(
                id=player_id,
                nickname=cleaned,
                session_code=session.code,
                joined_at=self.clock(),
            )
        player = self.player_repository.upsert_player(player)
        _logger.info("Player joined: code=%s player=%s", session.code, player_id)
        return session, player

    def leave_session(self, code: str, player_id: str) -> None:
        """Remove a player from the active roster."""
        session = self.get_session(code)
        if session.status is SessionStatus.ENDED:
            raise SessionClosed(f"Session {session.code} has ended")
        player = self.player_repository.get_player(player_id)
        if player is None or player.session_code != session.code:
            raise UnknownPlayer(f"Player {player_id} is not in session {session.code}")
        self.player_repository.set_active(player_id, False)
        _logger.info("Player left: code=%s player=%s", session.code, player_id)

    def get_session(self, code: str) -> Session:
        """Return the session for a room code or raise ``SessionNotFound``."""
        session = self.session_repository.get_by_code(normalize_code(code))
        if session is None:
            raise SessionNotFound(f"Session {code!r} not found")
        return session

    def roster(self, code: str) -> list[Player]:
        """Return active players in join order."""
        players = self.player_repository.list_players(normalize_code(code))
        return [player for player in players if player.is_active]

    def start_voting(self, code: str, actor_id: str) -> Round:
        """Open a new round; host only."""
        session = self.get_session(code)
        _require_host(session, actor_id)
        return self.round_controller.open_round(session)

    def submit_vote(
        self, code: str, voter_id: str, target_id: str, reason: str
    ) -> Vote:
        """Cast a vote in the session's current round."""
        session = self.get_session(code)
        round_ = self._current_round(session)
        if session.status is not SessionStatus.VOTING or round_ is None:
            raise RoundClosed(f"Session {session.code} is not collecting votes")
        return self.round_controller.submit_vote(
            round_, voter_id, target_id, reason, self.roster(session.code)
        )

    def tick(self, code: str, actor_id: str) -> bool:
        """Close the current round if everyone voted or time ran out."""
        session = self.get_session(code)
        round_ = self._current_round(session)
        if session.status is not SessionStatus.VOTING or round_ is None:
            return False
        votes = self.round_controller.vote_store.votes_for_round(round_.id)
        return self.round_controller.close_if_eligible(
            round_,
            roster=self.roster(session.code),
            votes=votes,
            is_host=session.host_id == actor_id,
        )

    def end_round(self, code: str, actor_id: str) -> bool:
        """Close the current round now; host only."""
        session = self.get_session(code)
        _require_host(session, actor_id)
        round_ = self._current_round(session)
        if round_ is None:
            return False
        return self.round_controller.force_close(round_, is_host=True)

    def end_session(self, code: str, actor_id: str) -> FinalVerdict:
        """End the session and return the final verdict; host only."""
        session = self.get_session(code)
        _require_host(session, actor_id)
        status = next_status(session.status, SessionEvent.END_SESSION)
        updated = self.session_repository.compare_and_set_status(
            session.id,
            expected=session.status,
            status=status,
            current_round_id=None,
            round_end_time=None,
        )
        if not updated:
            raise StaleTransition(f"Session {session.code} changed before it ended")
        _logger.info("Session ended: code=%s", session.code)
        return self.final_verdict(session.code)

    def final_verdict(self, code: str) -> FinalVerdict:
        """Compute session-wide standings and the Hall of Shame winner."""
        session = self.get_session(code)
        vote_store = self.round_controller.vote_store
        votes = vote_store.votes_for_session(session.code)
        if not votes:
            last_round = self.round_controller.round_repository.latest_round(
                session.code
            )
            if last_round is not None:
                votes = vote_store.votes_for_round(last_round.id)
        # Players who left still hold the votes cast against them.
        standings = tally(votes, self.player_repository.list_players(session.code))
        return build_verdict(standings, session.tie_break)

    def resolve_tie(self, code: str, actor_id: str) -> TieBreakResult:
        """Draw the tie-break once and persist it; host only.

        A stored result is authoritative: later calls return it unchanged.
        """
        session = self.get_session(code)
        _require_host(session, actor_id)
        if session.status is not SessionStatus.ENDED:
            raise StaleTransition(f"Session {session.code} has not ended")
        if session.tie_break is not None:
            return session.tie_break

        verdict = self.final_verdict(session.code)
        if verdict.kind is not VerdictKind.TIE_PENDING:
            raise NoTieToResolve(f"Session {session.code} has no tie to resolve")

        drawn = self.tie_resolver.resolve(verdict.candidates)
        result = replace(drawn, drawn_by=actor_id, drawn_at=self.clock())
        if self.session_repository.set_tie_break_if_absent(session.id, result):
            return result
        stored = self.get_session(session.code).tie_break
        if stored is None:
            raise StaleTransition(f"Tie-break for {session.code} was not stored")
        return stored

    def snapshot(self, code: str) -> SessionSnapshot:
        """Load everything a client needs to render the session."""
        session = self.get_session(code)
        vote_store = self.round_controller.vote_store
        round_ = self._current_round(session)
        return SessionSnapshot(
            session=session,
            current_round=round_,
            players=tuple(self.player_repository.list_players(session.code)),
            round_votes=tuple(vote_store.votes_for_round(round_.id)) if round_ else (),
            session_votes=tuple(vote_store.votes_for_session(session.code)),
        )

    def _current_round(self, session: Session) -> Round | None:
        if session.current_round_id is None:
            return None
        return self.round_controller.round_repository.get_round(
            session.current_round_id
        )

    def _free_code(self) -> str:
        for _ in range(self.code_attempts):
            code = self.code_generator()
            if not self.session_repository.code_in_use(code):
                return code
            _logger.warning("Room code collision: code=%s", code)
        raise SessionCodeUnavailable("Could not allocate a room code")


def _require_host(session: Session, actor_id: str) -> None:
    if session.host_id != actor_id:
        raise Unauthorized(f"Only the host of {session.code} can do that")

