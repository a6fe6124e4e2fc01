"""Random tie-break among players sharing the top score."""

import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from hall_of_shame.domain.models import TieBreakResult
from hall_of_shame.domain.tally import TallyEntry

_logger = logging.getLogger(__name__)


@dataclass
class TieResolver:
    """Performs one uniform draw among tied candidates.

    The draw is only meaningful when a single authoritative party runs it and
    the outcome is persisted; see ``SessionController.resolve_tie``.
    """

    rng_factory: Callable[[], random.Random] = random.Random

    def resolve(self, candidates: Sequence[TallyEntry]) -> TieBreakResult:
        """Pick a winner index in ``[0, len(candidates))``."""
        if not candidates:
            raise ValueError("Cannot resolve a tie without candidates")
        rng = self.rng_factory()
        index = rng.randrange(len(candidates))
        winner = candidates[index]
        _logger.info(
            "Tie resolved: winner=%s index=%s candidates=%s",
            winner.player_id,
            index,
            len(candidates),
        )
        return TieBreakResult(
            winner_id=winner.player_id,
            winner_index=index,
            candidate_ids=tuple(candidate.player_id for candidate in candidates),
        )
