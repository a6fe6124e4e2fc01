"""Error taxonomy for game operations.

``GameError`` subclasses are domain failures: terminal for the attempt and
never worth retrying. ``StoreUnavailable`` marks transient store or network
failures the user may re-trigger.
"""


class GameError(Exception):
    """Base class for domain errors."""

    kind = "game_error"


class SessionNotFound(GameError):
    """No session exists for the given room code."""

    kind = "session_not_found"


class SessionClosed(GameError):
    """The session has ended and accepts no more players."""

    kind = "session_closed"


class SessionCodeUnavailable(GameError):
    """Could not generate a free room code."""

    kind = "session_code_unavailable"


class DuplicateVote(GameError):
    """The voter already voted in this round."""

    kind = "duplicate_vote"


class InvalidTarget(GameError):
    """The vote target is not an active roster member."""

    kind = "invalid_target"


class InvalidReason(GameError):
    """The vote reason is not in the allowed set."""

    kind = "invalid_reason"


class InvalidNickname(GameError):
    """Nickname is empty or too long."""

    kind = "invalid_nickname"


class UnknownPlayer(GameError):
    """The acting player is not an active roster member."""

    kind = "unknown_player"


class Unauthorized(GameError):
    """A non-host attempted a host-only action."""

    kind = "unauthorized"


class StaleTransition(GameError):
    """The status precondition of a transition did not hold."""

    kind = "stale_transition"


class RoundClosed(GameError):
    """There is no round collecting votes."""

    kind = "round_closed"


class NoTieToResolve(GameError):
    """Tie-break was requested for a session without a tie."""

    kind = "no_tie"


class StoreUnavailable(RuntimeError):
    """The replicated store failed; the action may be retried by the user."""

    kind = "store_unavailable"
