"""Shared helpers for Supabase repositories."""

import logging
from datetime import datetime
from typing import Any, Protocol

import httpx
from supabase import PostgrestAPIError

from hall_of_shame.domain.errors import StoreUnavailable

_logger = logging.getLogger(__name__)


class _Executable(Protocol):
    def execute(self) -> Any: ...


def execute(query: _Executable, action: str) -> list[dict[str, Any]]:
    """Run a PostgREST query, surfacing failures as ``StoreUnavailable``."""
    try:
        response = query.execute()
    except (PostgrestAPIError, httpx.HTTPError) as exc:
        _logger.warning("Supabase %s failed: %s", action, exc)
        raise StoreUnavailable(f"Failed to {action}") from exc
    return list(response.data or [])


def parse_timestamp(raw: object) -> datetime | None:
    """Parse an ISO timestamp column."""
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None


def format_timestamp(value: datetime | None) -> str | None:
    """Serialize a timestamp column."""
    return value.isoformat() if value else None
