"""Final standings for an ended session."""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from hall_of_shame.domain.models import TieBreakResult
from hall_of_shame.domain.tally import TallyEntry, Tied, detect_tie


class VerdictKind(StrEnum):
    """How the session's loser was decided."""

    NO_WINNER = "NO_WINNER"
    WINNER = "WINNER"
    TIE_PENDING = "TIE_PENDING"
    TIE_BROKEN = "TIE_BROKEN"


@dataclass(frozen=True)
class FinalVerdict:
    """Session-wide standings and the resulting Hall of Shame winner."""

    kind: VerdictKind
    standings: tuple[TallyEntry, ...]
    winner_id: str | None = None
    candidates: tuple[TallyEntry, ...] = ()
    tie_break: TieBreakResult | None = None


def build_verdict(
    standings: Sequence[TallyEntry], tie_break: TieBreakResult | None = None
) -> FinalVerdict:
    """Derive the verdict from ranked standings and any stored tie-break."""
    ranked = tuple(standings)
    if not ranked or ranked[0].count == 0:
        return FinalVerdict(kind=VerdictKind.NO_WINNER, standings=ranked)

    outcome = detect_tie(ranked)
    if not isinstance(outcome, Tied):
        return FinalVerdict(
            kind=VerdictKind.WINNER,
            standings=ranked,
            winner_id=ranked[0].player_id,
            candidates=(ranked[0],),
        )

    if tie_break is None:
        return FinalVerdict(
            kind=VerdictKind.TIE_PENDING,
            standings=ranked,
            candidates=outcome.candidates,
        )
    return FinalVerdict(
        kind=VerdictKind.TIE_BROKEN,
        standings=ranked,
        winner_id=tie_break.winner_id,
        candidates=outcome.candidates,
        tie_break=tie_break,
    )
