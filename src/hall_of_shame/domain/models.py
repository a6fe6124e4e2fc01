"""Domain models for the Hall of Shame game."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID

NICKNAME_MAX_LENGTH = 12
ROOM_CODE_LENGTH = 4


class SessionStatus(StrEnum):
    """Lifecycle status of a game session."""

    LOBBY = "LOBBY"
    VOTING = "VOTING"
    FINISHED = "FINISHED"
    ENDED = "ENDED"


class RoundState(StrEnum):
    """Lifecycle state of a voting round."""

    OPEN = "OPEN"
    COLLECTING = "COLLECTING"
    CLOSED = "CLOSED"


class CloseReason(StrEnum):
    """Why a round was closed."""

    ALL_VOTED = "ALL_VOTED"
    TIMEOUT = "TIMEOUT"
    FORCED = "FORCED"


class VoteReason(StrEnum):
    """The closed set of reasons a player can be shamed for."""

    MISSED_SITTER = "Missed Sitter"
    RECKLESS = "Reckless"
    BALL_HOG = "Ball Hog"
    SLEEPING = "Sleeping"
    OWN_GOAL = "Own Goal"
    TOXIC = "Toxic"
    OTHER = "Other"


@dataclass(frozen=True)
class Player:
    """A participant in a session."""

    id: str
    nickname: str
    session_code: str
    joined_at: datetime
    is_active: bool = True


@dataclass(frozen=True)
class TieBreakResult:
    """The single authoritative outcome of a tie-break draw."""

    winner_id: str
    winner_index: int
    candidate_ids: tuple[str, ...]
    drawn_by: str | None = None
    drawn_at: datetime | None = None


@dataclass(frozen=True)
class Session:
    """A game instance identified by a room code."""

    id: UUID
    code: str
    host_id: str
    status: SessionStatus
    created_at: datetime
    current_round_id: UUID | None = None
    round_end_time: datetime | None = None
    tie_break: TieBreakResult | None = None


@dataclass(frozen=True)
class Round:
    """One timed voting period within a session."""

    id: UUID
    session_code: str
    created_at: datetime
    end_time: datetime
    closed_at: datetime | None = None
    close_reason: CloseReason | None = None

    @property
    def state(self) -> RoundState:
        """Rounds are created already collecting votes."""
        if self.closed_at is None:
            return RoundState.COLLECTING
        return RoundState.CLOSED

    def is_expired(self, now: datetime) -> bool:
        """Return whether the wall clock has reached the round end time."""
        return now >= self.end_time


@dataclass(frozen=True)
class Vote:
    """A single vote cast by one player against another."""

    round_id: UUID
    voter_id: str
    target_id: str
    reason: VoteReason
    session_code: str
    timestamp: datetime

    @property
    def id(self) -> str:
        return vote_key(self.round_id, self.voter_id)


def vote_key(round_id: UUID, voter_id: str) -> str:
    """Deterministic record id for a (round, voter) pair."""
    return f"{round_id}:{voter_id}"


def normalize_code(code: str) -> str:
    """Room codes are compared case-insensitively."""
    return code.strip().upper()
