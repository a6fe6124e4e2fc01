"""Player identity provisioning."""

from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4


class IdentityProvider(Protocol):
    """Mints stable identity tokens for new players."""

    def new_player_id(self) -> str:
        """Return a fresh player id."""


@dataclass
class UuidIdentityProvider(IdentityProvider):
    """Identity provider backed by random UUIDs."""

    def new_player_id(self) -> str:
        """Return a random UUID string."""
        return str(uuid4())
