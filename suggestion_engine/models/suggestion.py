"""Persisted suggestion model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Suggestion(BaseModel):
    """One fused, ranked suggestion for a source game.

    Unique on ``(source_id, target_id)``.  ``reason`` is always non-empty;
    the fuser falls back to a generic phrase when no evidence survives.
    """

    model_config = ConfigDict(frozen=True)

    source_id: int = Field(gt=0)
    target_id: int = Field(gt=0)
    reason: str
    score: float = Field(ge=0.0, le=1.0)
    created_at: datetime | None = None

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("reason must not be empty")
        return value
