"""Story generation clients."""

from daily_story.generation.base import GenerationClient
from daily_story.generation.openrouter import OpenRouterStoryClient

__all__ = [
    "GenerationClient",
    "OpenRouterStoryClient",
]
