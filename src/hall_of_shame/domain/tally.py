"""Vote counting and tie detection."""

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from hall_of_shame.domain.models import Player, Vote, VoteReason


@dataclass(frozen=True)
class TallyEntry:
    """Vote count for one roster member."""

    player_id: str
    nickname: str
    count: int


@dataclass(frozen=True)
class NoTie:
    """The top rank is held by a single player, or nobody scored."""


@dataclass(frozen=True)
class Tied:
    """Every player sharing the maximum count."""

    candidates: tuple[TallyEntry, ...]


TieOutcome = NoTie | Tied


def tally(votes: Iterable[Vote], roster: Sequence[Player]) -> list[TallyEntry]:
    """Rank roster members by votes received.

    Every roster member appears, including those with zero votes. Equal
    counts keep roster order; that ordering is for display only and does not
    settle a game-level tie.
    """
    counts = Counter(vote.target_id for vote in votes)
    entries = [
        TallyEntry(
            player_id=player.id,
            nickname=player.nickname,
            count=counts[player.id],
        )
        for player in roster
    ]
    return sorted(entries, key=lambda entry: entry.count, reverse=True)


def detect_tie(results: Sequence[TallyEntry]) -> TieOutcome:
    """Detect a tie at the top of ranked results."""
    if len(results) < 2:  # noqa: PLR2004
        return NoTie()
    top = results[0].count
    if top == 0 or results[1].count != top:
        return NoTie()
    return Tied(candidates=tuple(entry for entry in results if entry.count == top))


def top_reasons(votes: Iterable[Vote]) -> dict[str, VoteReason]:
    """Return the most frequent reason each target was voted for."""
    by_target: dict[str, Counter[VoteReason]] = {}
    for vote in votes:
        by_target.setdefault(vote.target_id, Counter())[vote.reason] += 1
    return {
        target_id: reasons.most_common(1)[0][0]
        for target_id, reasons in by_target.items()
    }
