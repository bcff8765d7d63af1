"""Error taxonomy for story generation and persistence."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class StoryError(Exception):
    """Base error for the daily story pipeline."""

    message: str
    code: str = "story_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class GenerationFailed(StoryError):
    """Upstream generation call or its response parsing failed; retryable."""

    code: str = "generation_failed"


@dataclass(slots=True)
class RetryExhausted(StoryError):
    """Every generation attempt failed; wraps the last failure."""

    code: str = "retry_exhausted"
    attempts: int = 0
    last_error: BaseException | None = None


@dataclass(slots=True)
class GenerationCancelled(StoryError):
    """Caller cancelled the generation while it was waiting or running."""

    code: str = "cancelled"


@dataclass(slots=True)
class PersistenceUnavailable(StoryError):
    """Store could not complete an operation for a reason other than a key collision."""

    code: str = "persistence_unavailable"


@dataclass(slots=True)
class InconsistentState(StoryError):
    """Store reported a date collision but the colliding row cannot be read back."""

    code: str = "inconsistent_state"
