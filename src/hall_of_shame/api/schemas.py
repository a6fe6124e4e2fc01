"""Pydantic models for request payloads."""

from pydantic import BaseModel


class NicknamePayload(BaseModel):
    """Payload for creating or joining a session."""

    nickname: str


class VotePayload(BaseModel):
    """Payload for casting a vote."""

    target_id: str
    reason: str
