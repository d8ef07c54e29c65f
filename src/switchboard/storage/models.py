"""Data models for persistent session tracking."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionRecord(BaseModel):
    """Last known session for a profile, serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    profile: str
    session_id: str = Field(..., alias="sessionId")
    total_cost: float = Field(default=0.0, alias="totalCost")
    turns: int = 1
    cwd: str
    started_at: datetime = Field(..., alias="startTime")
    last_updated: datetime = Field(..., alias="lastTurnTime")

    @field_validator("started_at", "last_updated")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


__all__ = ["SessionRecord"]
