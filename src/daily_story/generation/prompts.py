"""Prompt templates and response parsing for story generation."""

from __future__ import annotations

import json

from daily_story.errors import GenerationFailed
from daily_story.models import GeneratedStory

STORY_JSON_SHAPE = """\
{
  "title": "story title",
  "content": "full text of the story"
}"""

SYSTEM_PROMPT = """\
You are a gifted short-story writer.
Your task is to write a gripping short horror story in {language}, ideally
folk horror in the tradition of that language's ghost tales. The story must be
complete, with a setup, a development, a turn and a resolution, and it should
leave the reader uneasy long after the last line.

Respond with exactly one JSON object of the following shape and nothing else:
no explanations, no code fences, no text before or after the object.
{shape}
"""

USER_PROMPT_RANDOM_THEME = """\
Write today's short horror story. Pick a theme at random.
Make sure your answer is one valid JSON object with only the "title" and "content" fields.
"""

USER_PROMPT_WITH_THEME = """\
Write today's short horror story on this theme: {theme}
Make sure your answer is one valid JSON object with only the "title" and "content" fields.
"""


def build_messages(*, language: str, theme: str | None = None) -> list[dict[str, str]]:
    """Chat messages for one generation request."""

    user_prompt = (
        USER_PROMPT_WITH_THEME.format(theme=theme.strip())
        if theme and theme.strip()
        else USER_PROMPT_RANDOM_THEME
    )
    return [
        {
            "role": "system",
            "content": SYSTEM_PROMPT.format(language=language, shape=STORY_JSON_SHAPE),
        },
        {"role": "user", "content": user_prompt},
    ]


def parse_story_payload(text: str) -> GeneratedStory:
    """Extract title and body from a model response.

    The model is asked for bare JSON, but code fences or stray prose around
    the object are tolerated: the outermost ``{...}`` span is parsed.
    """

    stripped = text.strip()
    start = stripped.find("{")
    end = stripped.rfind("}")
    if start == -1 or end <= start:
        raise GenerationFailed(
            message="Model response does not contain a JSON object.",
            code="invalid_json",
        )
    try:
        payload = json.loads(stripped[start : end + 1])
    except json.JSONDecodeError as error:
        raise GenerationFailed(
            message=f"Model returned invalid JSON: {error.msg}",
            code="invalid_json",
        ) from error
    if not isinstance(payload, dict):
        raise GenerationFailed(message="Model JSON is not an object.", code="invalid_json")

    # Keys are matched case-insensitively; some models capitalise them.
    normalized = {str(key).lower(): value for key, value in payload.items()}
    title = normalized.get("title")
    content = normalized.get("content")
    if not isinstance(title, str) or not title.strip():
        raise GenerationFailed(message="Model JSON has no title.", code="missing_fields")
    if not isinstance(content, str) or not content.strip():
        raise GenerationFailed(message="Model JSON has no content.", code="missing_fields")
    return GeneratedStory(title=title.strip(), body=content.strip())
