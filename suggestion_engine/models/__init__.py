"""Domain models for the suggestion engine."""

from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game
from suggestion_engine.models.job import (
    TERMINAL_STATUSES,
    JobStatus,
    StatusSnapshot,
    StreamEvent,
    SuggestionJob,
)
from suggestion_engine.models.suggestion import Suggestion

__all__ = [
    "Candidate",
    "Game",
    "JobStatus",
    "StatusSnapshot",
    "StreamEvent",
    "Suggestion",
    "SuggestionJob",
    "TERMINAL_STATUSES",
]
