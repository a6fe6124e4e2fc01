"""Shared test fixtures."""

import random
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from hall_of_shame.config import Settings
from hall_of_shame.containers import AppContainer
from hall_of_shame.domain.models import (
    CloseReason,
    Player,
    Round,
    Session,
    SessionStatus,
    TieBreakResult,
    Vote,
    vote_key,
)
from hall_of_shame.services.identity import UuidIdentityProvider
from hall_of_shame.services.rounds import RoundController, RoundRepository
from hall_of_shame.services.sessions import (
    PlayerRepository,
    SessionController,
    SessionRepository,
)
from hall_of_shame.services.tiebreak import TieResolver
from hall_of_shame.services.votes import VoteRepository, VoteStore

START = datetime(2026, 1, 1, 20, 0, tzinfo=UTC)


@dataclass
class FakeClock:
    """Manually advanced clock."""

    now: datetime = START

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FixedIndexRandom(random.Random):
    """Random source whose draws always land on one index."""

    def __init__(self, index: int) -> None:
        super().__init__()
        self.index = index

    def randrange(self, *args, **kwargs) -> int:  # type: ignore[override]
        return self.index


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[UUID, Session] = field(default_factory=dict)

    def create_session(self, code: str, host_id: str, created_at: datetime) -> Session:
        session = Session(
            id=uuid4(),
            code=code,
            host_id=host_id,
            status=SessionStatus.LOBBY,
            created_at=created_at,
        )
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: UUID) -> Session | None:
        return self.sessions.get(session_id)

    def get_by_code(self, code: str) -> Session | None:
        matches = [s for s in self.sessions.values() if s.code == code.upper()]
        if not matches:
            return None
        return max(matches, key=lambda session: session.created_at)

    def code_in_use(self, code: str) -> bool:
        return any(
            session.code == code and session.status is not SessionStatus.ENDED
            for session in self.sessions.values()
        )

    def compare_and_set_status(  # noqa: PLR0913
        self,
        session_id: UUID,
        expected: SessionStatus,
        status: SessionStatus,
        current_round_id: UUID | None,
        round_end_time: datetime | None,
        expected_round_id: UUID | None = None,
    ) -> bool:
        session = self.sessions[session_id]
        if session.status is not expected:
            return False
        stale_round = (
            expected_round_id is not None
            and session.current_round_id != expected_round_id
        )
        if stale_round:
            return False
        self.sessions[session_id] = replace(
            session,
            status=status,
            current_round_id=current_round_id,
            round_end_time=round_end_time,
        )
        return True

    def set_tie_break_if_absent(self, session_id: UUID, result: TieBreakResult) -> bool:
        session = self.sessions[session_id]
        if session.tie_break is not None:
            return False
        self.sessions[session_id] = replace(session, tie_break=result)
        return True


@dataclass
class InMemoryPlayerRepository(PlayerRepository):
    """In-memory player repository for tests."""

    players: dict[str, Player] = field(default_factory=dict)

    def upsert_player(self, player: Player) -> Player:
        self.players[player.id] = player
        return player

    def get_player(self, player_id: str) -> Player | None:
        return self.players.get(player_id)

    def list_players(self, session_code: str) -> list[Player]:
        players = [p for p in self.players.values() if p.session_code == session_code]
        return sorted(players, key=lambda player: player.joined_at)

    def set_active(self, player_id: str, is_active: bool) -> None:
        self.players[player_id] = replace(self.players[player_id], is_active=is_active)


@dataclass
class InMemoryRoundRepository(RoundRepository):
    """In-memory round repository for tests."""

    rounds: dict[UUID, Round] = field(default_factory=dict)
    close_calls: int = 0

    def create_round(
        self, session_code: str, created_at: datetime, end_time: datetime
    ) -> Round:
        round_ = Round(
            id=uuid4(),
            session_code=session_code,
            created_at=created_at,
            end_time=end_time,
        )
        self.rounds[round_.id] = round_
        return round_

    def get_round(self, round_id: UUID) -> Round | None:
        return self.rounds.get(round_id)

    def latest_round(self, session_code: str) -> Round | None:
        rounds = [r for r in self.rounds.values() if r.session_code == session_code]
        if not rounds:
            return None
        return max(rounds, key=lambda round_: round_.created_at)

    def close_round_if_open(
        self, round_id: UUID, closed_at: datetime, reason: CloseReason
    ) -> bool:
        self.close_calls += 1
        round_ = self.rounds[round_id]
        if round_.closed_at is not None:
            return False
        self.rounds[round_id] = replace(
            round_, closed_at=closed_at, close_reason=reason
        )
        return True


@dataclass
class InMemoryVoteRepository(VoteRepository):
    """In-memory vote repository keyed like the real store."""

    votes: dict[str, Vote] = field(default_factory=dict)

    def insert_vote_if_absent(self, vote: Vote) -> bool:
        if vote.id in self.votes:
            return False
        self.votes[vote.id] = vote
        return True

    def get_vote(self, round_id: UUID, voter_id: str) -> Vote | None:
        return self.votes.get(vote_key(round_id, voter_id))

    def list_votes_for_round(self, round_id: UUID) -> list[Vote]:
        return [vote for vote in self.votes.values() if vote.round_id == round_id]

    def list_votes_for_session(self, session_code: str) -> list[Vote]:
        return [v for v in self.votes.values() if v.session_code == session_code]


def make_player(
    player_id: str, nickname: str, offset: int, code: str = "ABCD"
) -> Player:
    """Build a roster member joined ``offset`` seconds after the start."""
    return Player(
        id=player_id,
        nickname=nickname,
        session_code=code,
        joined_at=START + timedelta(seconds=offset),
    )


@dataclass
class GameHarness:
    """Controllers wired to in-memory repositories."""

    clock: FakeClock
    sessions: InMemorySessionRepository
    players: InMemoryPlayerRepository
    rounds: InMemoryRoundRepository
    votes: InMemoryVoteRepository
    vote_store: VoteStore
    round_controller: RoundController
    session_controller: SessionController


def build_harness(
    tie_resolver: TieResolver | None = None, codes: list[str] | None = None
) -> GameHarness:
    clock = FakeClock()
    sessions = InMemorySessionRepository()
    players = InMemoryPlayerRepository()
    rounds = InMemoryRoundRepository()
    votes = InMemoryVoteRepository()
    vote_store = VoteStore(votes, clock=clock)
    round_controller = RoundController(
        round_repository=rounds,
        session_repository=sessions,
        vote_store=vote_store,
        clock=clock,
    )
    pending_codes = list(codes or ["ABCD", "EFGH", "IJKL", "MNOP", "QRST", "UVWX"])
    session_controller = SessionController(
        session_repository=sessions,
        player_repository=players,
        round_controller=round_controller,
        tie_resolver=tie_resolver or TieResolver(),
        code_generator=lambda: pending_codes.pop(0),
        clock=clock,
    )
    return GameHarness(
        clock=clock,
        sessions=sessions,
        players=players,
        rounds=rounds,
        votes=votes,
        vote_store=vote_store,
        round_controller=round_controller,
        session_controller=session_controller,
    )


@pytest.fixture
def harness() -> GameHarness:
    return build_harness()


@pytest.fixture
def lobby(harness: GameHarness) -> str:
    """A session hosted by alice with bob and carol joined; returns its code."""
    controller = harness.session_controller
    session, _ = controller.create_session("alice", "Alice")
    harness.clock.advance(1)
    controller.join_session(session.code, "bob", "Bob")
    harness.clock.advance(1)
    controller.join_session(session.code, "carol", "Carol")
    return session.code


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key=(
            "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
            "eyJyb2xlIjoic2VydmljZV9yb2xlIn0."
            "c2lnbmF0dXJl"
        ),
    )


@pytest.fixture
def container(settings: Settings, harness: GameHarness) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        identity_provider=UuidIdentityProvider(),
        vote_store=harness.vote_store,
        round_controller=harness.round_controller,
        session_controller=harness.session_controller,
        close_resources=close_resources,
    )
