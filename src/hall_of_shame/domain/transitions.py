"""Session transition table."""

from enum import StrEnum

from hall_of_shame.domain.errors import StaleTransition
from hall_of_shame.domain.models import SessionStatus


class SessionEvent(StrEnum):
    """Events that move a session between statuses."""

    START_VOTING = "START_VOTING"
    CLOSE_ROUND = "CLOSE_ROUND"
    END_SESSION = "END_SESSION"


TRANSITIONS: dict[tuple[SessionStatus, SessionEvent], SessionStatus] = {
    (SessionStatus.LOBBY, SessionEvent.START_VOTING): SessionStatus.VOTING,
    (SessionStatus.VOTING, SessionEvent.CLOSE_ROUND): SessionStatus.FINISHED,
    (SessionStatus.FINISHED, SessionEvent.START_VOTING): SessionStatus.VOTING,
    (SessionStatus.FINISHED, SessionEvent.END_SESSION): SessionStatus.ENDED,
}


def next_status(current: SessionStatus, event: SessionEvent) -> SessionStatus:
    """Return the status reached from ``current`` on ``event``."""
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise StaleTransition(
            f"Cannot apply {event.value} to a session in {current.value}"
        ) from None


def can_apply(current: SessionStatus, event: SessionEvent) -> bool:
    """Return whether ``event`` is allowed from ``current``."""
    return (current, event) in TRANSITIONS
