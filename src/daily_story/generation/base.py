"""Generation client contract consumed by the story service."""

from __future__ import annotations

from typing import Protocol

from daily_story.models import GeneratedStory


class GenerationClient(Protocol):
    """Protocol implemented by text-generation providers.

    Implementations raise ``GenerationFailed`` for transport errors and for
    responses that cannot be turned into a title and a body.
    """

    source: str

    def generate(self, *, theme: str | None = None, model: str | None = None) -> GeneratedStory:
        """Produce one story."""
