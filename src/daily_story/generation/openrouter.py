"""OpenAI-compatible (OpenRouter) story generation client."""

from __future__ import annotations

import logging
from typing import Any

from openai import OpenAI, OpenAIError

from daily_story.config import GenerationSettings
from daily_story.errors import GenerationFailed
from daily_story.generation.prompts import build_messages, parse_story_payload
from daily_story.models import GeneratedStory

logger = logging.getLogger(__name__)


class OpenRouterStoryClient:
    """Generate stories through a chat-completions endpoint with JSON output."""

    def __init__(self, settings: GenerationSettings, *, client: Any | None = None) -> None:
        if not settings.api_key and client is None:
            raise ValueError("Generation API key is not set.")
        if not settings.base_url:
            raise ValueError("Generation base URL is not set.")
        self.settings = settings
        self.source = settings.source_tag or settings.model
        self._client = client or OpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.request_timeout_seconds,
            # Retries are owned by RetryPolicy.
            max_retries=0,
        )
        logger.info("Story generation client initialized (base_url=%s).", settings.base_url)

    def generate(self, *, theme: str | None = None, model: str | None = None) -> GeneratedStory:
        model_to_use = (model or self.settings.model).strip()
        if not model_to_use:
            raise ValueError("Generation model is not specified.")

        logger.info("Requesting story from model %s.", model_to_use)
        try:
            completion = self._client.chat.completions.create(
                model=model_to_use,
                messages=build_messages(language=self.settings.language, theme=theme),
                max_tokens=self.settings.max_tokens,
                temperature=self.settings.temperature,
                response_format={"type": "json_object"},
                extra_headers=_attribution_headers(self.settings),
            )
        except OpenAIError as error:
            raise GenerationFailed(
                message=f"Model {model_to_use!r} request failed: {error}",
                code="provider_error",
            ) from error

        text = _first_message_text(completion)
        if not text:
            raise GenerationFailed(
                message=f"Model {model_to_use!r} returned an empty response.",
                code="empty_response",
            )
        try:
            story = parse_story_payload(text)
        except GenerationFailed:
            logger.warning("Unparseable response from %s: %.500s", model_to_use, text)
            raise
        logger.info("Model %s produced story %r.", model_to_use, story.title)
        return story


def _first_message_text(completion: Any) -> str:
    choices = getattr(completion, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    return content.strip() if isinstance(content, str) else ""


def _attribution_headers(settings: GenerationSettings) -> dict[str, str]:
    headers: dict[str, str] = {}
    if settings.site_url:
        headers["HTTP-Referer"] = settings.site_url
    if settings.app_name:
        headers["X-Title"] = settings.app_name
    return headers
