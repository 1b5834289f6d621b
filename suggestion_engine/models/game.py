"""Catalog game model.

A :class:`Game` is what the catalog collaborator hands us.  The engine
never writes games; it only reads the handful of fields the signal
providers need: credits, weighted tags, and per-facet embedding vectors.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def split_credits(value: str) -> list[str]:
    """Split a comma-separated credit string into trimmed, non-empty names."""
    return [part.strip() for part in (value or "").split(",") if part.strip()]


class Game(BaseModel):
    """One catalog entry (read-only).

    ``tags`` maps a tag name to its vote weight as reported by the catalog
    (SteamSpy reports integer vote counts).  ``embeddings`` maps a facet
    name (``aesthetic``, ``mechanics``, ...) to a dense vector.
    """

    model_config = ConfigDict(frozen=True)

    appid: int = Field(gt=0)
    title: str = ""
    developer: str = ""
    publisher: str = ""
    tags: dict[str, float] = Field(default_factory=dict)
    embeddings: dict[str, list[float]] = Field(default_factory=dict)
    short_description: str = ""

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: object) -> object:
        # SteamSpy returns [] instead of {} for games without tags.
        if value is None or value == []:
            return {}
        if isinstance(value, list):
            return {str(tag): float(len(value) - i) for i, tag in enumerate(value)}
        return value

    @field_validator("embeddings", mode="before")
    @classmethod
    def _coerce_embeddings(cls, value: object) -> object:
        if value is None:
            return {}
        return value

    def top_tags(self, n: int) -> list[str]:
        """Return the *n* highest-weight tags, ties broken by tag name."""
        ordered = sorted(self.tags.items(), key=lambda kv: (-kv[1], kv[0]))
        return [tag for tag, _ in ordered[: max(0, n)]]

    def top_tags_lower(self, n: int) -> list[str]:
        """Lower-cased :meth:`top_tags` with duplicates (by case) removed."""
        seen: set[str] = set()
        result: list[str] = []
        for tag in self.top_tags(n):
            low = tag.strip().lower()
            if low and low not in seen:
                seen.add(low)
                result.append(low)
        return result

    def embedding(self, facet: str) -> list[float] | None:
        vec = self.embeddings.get(facet)
        return vec if vec else None

    @property
    def has_tags(self) -> bool:
        return bool(self.tags)

    @property
    def has_embeddings(self) -> bool:
        return any(self.embeddings.values())
