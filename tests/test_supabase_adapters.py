"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from uuid import uuid4

import httpx
import pytest
from supabase import PostgrestAPIError

from hall_of_shame.adapters.supabase_player_repository import SupabasePlayerRepository
from hall_of_shame.adapters.supabase_round_repository import SupabaseRoundRepository
from hall_of_shame.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from hall_of_shame.adapters.supabase_vote_repository import SupabaseVoteRepository
from hall_of_shame.domain.errors import StoreUnavailable
from hall_of_shame.domain.models import (
    CloseReason,
    SessionStatus,
    TieBreakResult,
    Vote,
    VoteReason,
)
from tests.conftest import START, make_player


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "update": [], "upsert": []}
    )
    last_payload: object | None = None
    last_options: dict[str, object] = field(default_factory=dict)
    last_filters: list[tuple[str, str, object]] = field(default_factory=list)
    error: Exception | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        self.last_filters = []
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        self.last_filters = []
        return self

    def upsert(self, payload, **options) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "upsert"
        self.last_payload = payload
        self.last_options = options
        self.last_filters = []
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        self.last_filters = []
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("eq", column, value))
        return self

    def neq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("neq", column, value))
        return self

    def is_(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("is", column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        if self.error is not None:
            raise self.error
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def _session_row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "id": str(uuid4()),
        "code": "ABCD",
        "host_id": "alice",
        "status": "LOBBY",
        "created_at": START.isoformat(),
        "current_round_id": None,
        "round_end_time": None,
        "tie_break_json": None,
    }
    row.update(overrides)
    return row


def test_supabase_session_repository_create_and_find() -> None:
    client = FakeSupabaseClient()
    table = client.table("sessions")
    row = _session_row()
    table.queue("insert", [row])
    table.queue("select", [row])

    repository = SupabaseSessionRepository(client)
    created = repository.create_session("ABCD", "alice", START)
    found = repository.get_by_code("abcd")

    assert created.status is SessionStatus.LOBBY
    assert found == created
    assert ("eq", "code", "ABCD") in table.last_filters


def test_supabase_session_repository_code_in_use_ignores_ended() -> None:
    client = FakeSupabaseClient()
    table = client.table("sessions")
    table.queue("select", [{"id": str(uuid4())}])

    repository = SupabaseSessionRepository(client)

    assert repository.code_in_use("ABCD")
    assert ("neq", "status", "ENDED") in table.last_filters
    assert not repository.code_in_use("ABCD")


def test_supabase_session_repository_compare_and_set() -> None:
    client = FakeSupabaseClient()
    table = client.table("sessions")
    session_id = uuid4()
    round_id = uuid4()
    table.queue("update", [_session_row(id=str(session_id), status="FINISHED")])

    repository = SupabaseSessionRepository(client)
    applied = repository.compare_and_set_status(
        session_id,
        expected=SessionStatus.VOTING,
        status=SessionStatus.FINISHED,
        current_round_id=round_id,
        round_end_time=START,
        expected_round_id=round_id,
    )
    lost = repository.compare_and_set_status(
        session_id,
        expected=SessionStatus.VOTING,
        status=SessionStatus.FINISHED,
        current_round_id=round_id,
        round_end_time=START,
    )

    assert applied
    assert not lost
    assert table.last_payload == {
        "status": "FINISHED",
        "current_round_id": str(round_id),
        "round_end_time": START.isoformat(),
    }
    assert ("eq", "status", "VOTING") in table.last_filters


def test_supabase_session_repository_tie_break_roundtrip() -> None:
    client = FakeSupabaseClient()
    table = client.table("sessions")
    result = TieBreakResult(
        winner_id="bob",
        winner_index=1,
        candidate_ids=("alice", "bob"),
        drawn_by="alice",
        drawn_at=START,
    )
    repository = SupabaseSessionRepository(client)
    session_id = uuid4()

    assert not repository.set_tie_break_if_absent(session_id, result)
    assert ("is", "tie_break_json", "null") in table.last_filters

    payload = table.last_payload
    assert isinstance(payload, dict)
    stored = _session_row(status="ENDED", tie_break_json=payload["tie_break_json"])
    table.queue("select", [stored])
    session = repository.get_session(session_id)

    assert session is not None
    assert session.tie_break == result


def test_supabase_player_repository() -> None:
    client = FakeSupabaseClient()
    table = client.table("players")
    player = make_player("bob", "Bob", 1)
    row = {
        "id": "bob",
        "nickname": "Bob",
        "session_code": "ABCD",
        "joined_at": player.joined_at.isoformat(),
        "is_active": True,
    }
    table.queue("upsert", [row])
    table.queue("select", [{**row, "is_active": False}])

    repository = SupabasePlayerRepository(client)
    saved = repository.upsert_player(player)
    players = repository.list_players("ABCD")
    repository.set_active("bob", False)

    assert saved == player
    assert table.last_options == {"on_conflict": "id"}
    assert players[0].is_active is False
    assert table.last_payload == {"is_active": False}
    assert ("eq", "id", "bob") in table.last_filters


def test_supabase_round_repository_close_guard() -> None:
    client = FakeSupabaseClient()
    table = client.table("rounds")
    round_id = uuid4()
    row = {
        "id": str(round_id),
        "session_code": "ABCD",
        "created_at": START.isoformat(),
        "end_time": START.isoformat(),
        "closed_at": None,
        "close_reason": None,
    }
    table.queue("insert", [row])
    table.queue(
        "update",
        [{**row, "closed_at": START.isoformat(), "close_reason": "TIMEOUT"}],
    )

    repository = SupabaseRoundRepository(client)
    created = repository.create_round("ABCD", START, START)
    closed = repository.close_round_if_open(round_id, START, CloseReason.TIMEOUT)
    closed_again = repository.close_round_if_open(round_id, START, CloseReason.TIMEOUT)

    assert created.id == round_id
    assert closed
    assert not closed_again
    assert ("is", "closed_at", "null") in table.last_filters


def test_supabase_vote_repository_keeps_first_write() -> None:
    client = FakeSupabaseClient()
    table = client.table("votes")
    round_id = uuid4()
    vote = Vote(
        round_id=round_id,
        voter_id="alice",
        target_id="bob",
        reason=VoteReason.OWN_GOAL,
        session_code="ABCD",
        timestamp=START,
    )
    table.queue("upsert", [{"id": vote.id}])
    table.queue(
        "select",
        [
            {
                "id": vote.id,
                "round_id": str(round_id),
                "voter_id": "alice",
                "target_id": "bob",
                "reason": "Own Goal",
                "session_code": "ABCD",
                "timestamp": START.isoformat(),
            }
        ],
    )

    repository = SupabaseVoteRepository(client)

    assert repository.insert_vote_if_absent(vote)
    assert table.last_options == {"on_conflict": "id", "ignore_duplicates": True}
    assert not repository.insert_vote_if_absent(vote)
    assert repository.get_vote(round_id, "alice") == vote
    assert ("eq", "id", f"{round_id}:alice") in table.last_filters


@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectError("connection refused"),
        PostgrestAPIError({"message": "relation does not exist", "code": "42P01"}),
    ],
)
def test_store_failures_surface_as_unavailable(error: Exception) -> None:
    client = FakeSupabaseClient()
    client.table("votes").error = error

    repository = SupabaseVoteRepository(client)

    with pytest.raises(StoreUnavailable) as excinfo:
        repository.list_votes_for_session("ABCD")
    assert excinfo.value.__cause__ is error
