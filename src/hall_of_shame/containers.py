"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from hall_of_shame.adapters.supabase_player_repository import SupabasePlayerRepository
from hall_of_shame.adapters.supabase_round_repository import SupabaseRoundRepository
from hall_of_shame.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from hall_of_shame.adapters.supabase_vote_repository import SupabaseVoteRepository
from hall_of_shame.config import Settings
from hall_of_shame.services.identity import IdentityProvider, UuidIdentityProvider
from hall_of_shame.services.rounds import RoundController
from hall_of_shame.services.sessions import SessionController
from hall_of_shame.services.tiebreak import TieResolver
from hall_of_shame.services.votes import VoteStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    identity_provider: IdentityProvider
    vote_store: VoteStore
    round_controller: RoundController
    session_controller: SessionController
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    vote_store = VoteStore(SupabaseVoteRepository(supabase_client))
    round_controller = RoundController(
        round_repository=SupabaseRoundRepository(supabase_client),
        session_repository=session_repository,
        vote_store=vote_store,
        duration_seconds=resolved_settings.round_duration_seconds,
    )
    session_controller = SessionController(
        session_repository=session_repository,
        player_repository=SupabasePlayerRepository(supabase_client),
        round_controller=round_controller,
        tie_resolver=TieResolver(),
        code_attempts=resolved_settings.code_generation_attempts,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=resolved_settings,
        identity_provider=UuidIdentityProvider(),
        vote_store=vote_store,
        round_controller=round_controller,
        session_controller=session_controller,
        close_resources=close_resources,
    )
