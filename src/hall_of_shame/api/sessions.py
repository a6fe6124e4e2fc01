"""Session endpoints keyed by room code."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from hall_of_shame.api.schemas import NicknamePayload, VotePayload
from hall_of_shame.services.sync import compute_view, pending_host_action

if TYPE_CHECKING:
    from hall_of_shame.containers import AppContainer
    from hall_of_shame.domain.models import (
        Player,
        Round,
        Session,
        TieBreakResult,
        Vote,
    )
    from hall_of_shame.domain.tally import TallyEntry
    from hall_of_shame.domain.verdict import FinalVerdict
    from hall_of_shame.services.sync import SessionView

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


async def require_player(x_player_id: str | None = Header(default=None)) -> str:
    """Return the caller's claimed player id."""
    if not x_player_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Player-Id"
        )
    return x_player_id


def _player_id_or_new(request: Request, x_player_id: str | None) -> str:
    if x_player_id:
        return x_player_id
    return _container(request).identity_provider.new_player_id()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: NicknamePayload,
    request: Request,
    x_player_id: str | None = Header(default=None),
) -> dict[str, object]:
    """Create a session; the caller becomes its host."""
    player_id = _player_id_or_new(request, x_player_id)
    controller = _container(request).session_controller
    session, player = controller.create_session(player_id, payload.nickname)
    return {"session": _serialize_session(session), "player": _serialize_player(player)}


@router.post("/{code}/players")
async def join_session(
    code: str,
    payload: NicknamePayload,
    request: Request,
    x_player_id: str | None = Header(default=None),
) -> dict[str, object]:
    """Join a session by room code."""
    player_id = _player_id_or_new(request, x_player_id)
    controller = _container(request).session_controller
    session, player = controller.join_session(code, player_id, payload.nickname)
    return {"session": _serialize_session(session), "player": _serialize_player(player)}


@router.delete("/{code}/players/me")
async def leave_session(
    code: str, request: Request, player_id: str = Depends(require_player)
) -> dict[str, str]:
    """Leave the active roster."""
    _container(request).session_controller.leave_session(code, player_id)
    return {"status": "ok"}


@router.post("/{code}/rounds", status_code=status.HTTP_201_CREATED)
async def start_round(
    code: str, request: Request, player_id: str = Depends(require_player)
) -> dict[str, object]:
    """Start a voting round (host only)."""
    round_ = _container(request).session_controller.start_voting(code, player_id)
    return _serialize_round(round_)


@router.post("/{code}/votes", status_code=status.HTTP_201_CREATED)
async def cast_vote(
    code: str,
    payload: VotePayload,
    request: Request,
    player_id: str = Depends(require_player),
) -> dict[str, object]:
    """Cast the caller's vote in the current round."""
    vote = _container(request).session_controller.submit_vote(
        code, player_id, payload.target_id, payload.reason
    )
    return _serialize_vote(vote)


@router.post("/{code}/tick")
async def tick(
    code: str, request: Request, player_id: str = Depends(require_player)
) -> dict[str, bool]:
    """Let the host close the round once everyone voted or time ran out."""
    closed = _container(request).session_controller.tick(code, player_id)
    return {"closed": closed}


@router.post("/{code}/rounds/current/close")
async def close_round(
    code: str, request: Request, player_id: str = Depends(require_player)
) -> dict[str, bool]:
    """Close the current round immediately (host only)."""
    closed = _container(request).session_controller.end_round(code, player_id)
    return {"closed": closed}


@router.post("/{code}/end")
async def end_session(
    code: str, request: Request, player_id: str = Depends(require_player)
) -> dict[str, object]:
    """End the session and return the final verdict (host only)."""
    verdict = _container(request).session_controller.end_session(code, player_id)
    return _serialize_verdict(verdict)


@router.post("/{code}/tie-break")
async def tie_break(
    code: str, request: Request, player_id: str = Depends(require_player)
) -> dict[str, object]:
    """Run the single authoritative tie-break draw (host only)."""
    result = _container(request).session_controller.resolve_tie(code, player_id)
    return _serialize_tie_break(result)


@router.get("/{code}/state")
async def session_state(
    code: str, request: Request, player_id: str = Depends(require_player)
) -> dict[str, object]:
    """Return the session as seen by the caller."""
    controller = _container(request).session_controller
    snapshot = controller.snapshot(code)
    now = controller.clock()
    view = compute_view(snapshot, player_id, now)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    action = pending_host_action(snapshot, player_id, now)
    return {
        **_serialize_view(view),
        "pending_action": action.value if action else None,
    }


def _serialize_session(session: Session) -> dict[str, object]:
    return {
        "id": str(session.id),
        "code": session.code,
        "host_id": session.host_id,
        "status": session.status.value,
        "current_round_id": (
            str(session.current_round_id) if session.current_round_id else None
        ),
        "round_end_time": (
            session.round_end_time.isoformat() if session.round_end_time else None
        ),
    }


def _serialize_player(player: Player) -> dict[str, object]:
    return {
        "id": player.id,
        "nickname": player.nickname,
        "session_code": player.session_code,
        "joined_at": player.joined_at.isoformat(),
        "is_active": player.is_active,
    }


def _serialize_round(round_: Round) -> dict[str, object]:
    return {
        "id": str(round_.id),
        "session_code": round_.session_code,
        "state": round_.state.value,
        "end_time": round_.end_time.isoformat(),
        "close_reason": round_.close_reason.value if round_.close_reason else None,
    }


def _serialize_vote(vote: Vote) -> dict[str, object]:
    return {
        "id": vote.id,
        "round_id": str(vote.round_id),
        "voter_id": vote.voter_id,
        "target_id": vote.target_id,
        "reason": vote.reason.value,
    }


def _serialize_results(results: tuple[TallyEntry, ...]) -> list[dict[str, object]]:
    return [
        {"player_id": entry.player_id, "nickname": entry.nickname, "votes": entry.count}
        for entry in results
    ]


def _serialize_tie_break(result: TieBreakResult) -> dict[str, object]:
    return {
        "winner_id": result.winner_id,
        "winner_index": result.winner_index,
        "candidate_ids": list(result.candidate_ids),
        "drawn_by": result.drawn_by,
        "drawn_at": result.drawn_at.isoformat() if result.drawn_at else None,
    }


def _serialize_verdict(verdict: FinalVerdict) -> dict[str, object]:
    return {
        "kind": verdict.kind.value,
        "winner_id": verdict.winner_id,
        "standings": _serialize_results(verdict.standings),
        "candidates": _serialize_results(verdict.candidates),
        "tie_break": (
            _serialize_tie_break(verdict.tie_break) if verdict.tie_break else None
        ),
    }


def _serialize_view(view: SessionView) -> dict[str, object]:
    return {
        "code": view.code,
        "status": view.status.value,
        "host_id": view.host_id,
        "is_host": view.is_host,
        "roster": [_serialize_player(player) for player in view.roster],
        "has_voted": view.has_voted,
        "votes_locked": view.votes_locked,
        "seconds_left": view.seconds_left,
        "round_results": _serialize_results(view.round_results),
        "overall_results": _serialize_results(view.overall_results),
        "top_reasons": {key: reason.value for key, reason in view.reasons.items()},
        "verdict": _serialize_verdict(view.verdict) if view.verdict else None,
    }
