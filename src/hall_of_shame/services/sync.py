"""Pure state folding for clients observing a session.

Store notifications are applied with ``apply_change`` and the client's next
state is derived with ``compute_view`` and ``pending_host_action``. Whatever
delivers the notifications (polling, realtime channels) lives outside.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum

from hall_of_shame.domain.models import (
    Player,
    Round,
    RoundState,
    Session,
    SessionStatus,
    Vote,
    VoteReason,
)
from hall_of_shame.domain.tally import TallyEntry, tally, top_reasons
from hall_of_shame.domain.verdict import FinalVerdict, build_verdict
from hall_of_shame.services.rounds import close_reason_for


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything a client knows about one session."""

    session: Session | None = None
    current_round: Round | None = None
    players: tuple[Player, ...] = ()
    round_votes: tuple[Vote, ...] = ()
    session_votes: tuple[Vote, ...] = ()

    @property
    def roster(self) -> tuple[Player, ...]:
        """Active players in join order."""
        active = [player for player in self.players if player.is_active]
        return tuple(sorted(active, key=lambda player: player.joined_at))

    @property
    def members(self) -> tuple[Player, ...]:
        """Every player who joined, active or not, in join order."""
        return tuple(sorted(self.players, key=lambda player: player.joined_at))

    @property
    def scoring_votes(self) -> tuple[Vote, ...]:
        """Session-wide votes, or the current round's when none are known."""
        return self.session_votes or self.round_votes


@dataclass(frozen=True)
class SessionChanged:
    session: Session | None


@dataclass(frozen=True)
class RoundChanged:
    round: Round


@dataclass(frozen=True)
class PlayersChanged:
    players: tuple[Player, ...]


@dataclass(frozen=True)
class RoundVotesChanged:
    votes: tuple[Vote, ...]


@dataclass(frozen=True)
class SessionVotesChanged:
    votes: tuple[Vote, ...]


Change = (
    SessionChanged
    | RoundChanged
    | PlayersChanged
    | RoundVotesChanged
    | SessionVotesChanged
)


class HostAction(StrEnum):
    """Writes the host client is expected to perform."""

    CLOSE_ROUND = "CLOSE_ROUND"


@dataclass(frozen=True)
class SessionView:
    """Derived state for one viewer."""

    code: str
    status: SessionStatus
    host_id: str
    is_host: bool
    roster: tuple[Player, ...]
    has_voted: bool
    votes_locked: int
    seconds_left: int
    round_results: tuple[TallyEntry, ...]
    overall_results: tuple[TallyEntry, ...]
    reasons: dict[str, VoteReason]
    verdict: FinalVerdict | None


def apply_change(snapshot: SessionSnapshot, change: Change) -> SessionSnapshot:
    """Fold one store notification into the snapshot."""
    if isinstance(change, SessionChanged):
        previous = snapshot.session.current_round_id if snapshot.session else None
        current = change.session.current_round_id if change.session else None
        if current != previous:
            return replace(
                snapshot, session=change.session, current_round=None, round_votes=()
            )
        return replace(snapshot, session=change.session)
    if isinstance(change, RoundChanged):
        if not _is_current_round(snapshot, change.round.id):
            return snapshot
        return replace(snapshot, current_round=change.round)
    if isinstance(change, PlayersChanged):
        return replace(snapshot, players=change.players)
    if isinstance(change, RoundVotesChanged):
        votes = tuple(
            vote
            for vote in change.votes
            if _is_current_round(snapshot, vote.round_id)
        )
        return replace(snapshot, round_votes=votes)
    if isinstance(change, SessionVotesChanged):
        return replace(snapshot, session_votes=change.votes)
    raise TypeError(f"Unsupported change: {change!r}")


def pending_host_action(
    snapshot: SessionSnapshot, viewer_id: str, now: datetime
) -> HostAction | None:
    """Return the write the viewer should perform next, if any."""
    session = snapshot.session
    round_ = snapshot.current_round
    if session is None or round_ is None:
        return None
    if session.status is not SessionStatus.VOTING or session.host_id != viewer_id:
        return None
    # A closed round under a VOTING session is a close that never finished.
    if round_.state is not RoundState.CLOSED and (
        close_reason_for(round_, snapshot.round_votes, snapshot.roster, now) is None
    ):
        return None
    return HostAction.CLOSE_ROUND


def compute_view(
    snapshot: SessionSnapshot, viewer_id: str, now: datetime
) -> SessionView | None:
    """Derive what a viewer should see."""
    session = snapshot.session
    if session is None:
        return None
    roster = snapshot.roster
    members = snapshot.members
    overall = tally(snapshot.scoring_votes, members)
    verdict = None
    if session.status is SessionStatus.ENDED:
        verdict = build_verdict(overall, session.tie_break)
    return SessionView(
        code=session.code,
        status=session.status,
        host_id=session.host_id,
        is_host=session.host_id == viewer_id,
        roster=roster,
        has_voted=any(vote.voter_id == viewer_id for vote in snapshot.round_votes),
        votes_locked=len({vote.voter_id for vote in snapshot.round_votes}),
        seconds_left=_seconds_left(session, now),
        round_results=tuple(tally(snapshot.round_votes, members)),
        overall_results=tuple(overall),
        reasons=top_reasons(snapshot.scoring_votes),
        verdict=verdict,
    )


def _is_current_round(snapshot: SessionSnapshot, round_id: object) -> bool:
    session = snapshot.session
    return session is not None and session.current_round_id == round_id


def _seconds_left(session: Session, now: datetime) -> int:
    if session.status is not SessionStatus.VOTING or session.round_end_time is None:
        return 0
    remaining = (session.round_end_time - now).total_seconds()
    return max(0, math.floor(remaining))
