"""Domain models for daily stories."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class InsertOutcome(str, Enum):
    """Result of an attempt to persist a story."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class Story:
    """Persisted story, one per calendar date."""

    story_id: int
    title: str
    body: str
    story_date: date
    source: str | None
    created_at: datetime


@dataclass(slots=True, frozen=True)
class GeneratedStory:
    """Title and body returned by a generation provider."""

    title: str
    body: str


@dataclass(slots=True)
class StoryDraft:
    """Input payload for inserting a story."""

    title: str
    body: str
    story_date: date
    source: str | None = None


@dataclass(slots=True)
class InsertResult:
    """Outcome of `StoryRepository.insert`.

    ``story`` holds the new row for ``CREATED``; ``error`` describes the
    failure for ``FAILED``. ``ALREADY_EXISTS`` carries neither: the caller
    re-reads the winning row itself.
    """

    outcome: InsertOutcome
    story: Story | None = None
    error: str | None = None
