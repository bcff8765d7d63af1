"""Use-case services for daily stories."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, date, datetime

from daily_story.errors import GenerationFailed, InconsistentState, PersistenceUnavailable
from daily_story.generation.base import GenerationClient
from daily_story.models import GeneratedStory, InsertOutcome, Story, StoryDraft
from daily_story.repository import StoryStore
from daily_story.retry import RetryPolicy
from daily_story.storage.common import utc_now

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50
# SQLite binds OFFSET as a signed 64-bit integer.
MAX_STORE_OFFSET = 2**63 - 1


class DailyStoryService:
    """Get-or-create today's story and serve stored ones.

    Safe to call from several threads at once. No lock spans the read and the
    insert: when two callers both miss the cache, both generate, the store's
    unique date index lets exactly one insert through, and the loser returns
    the winner's row.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        repository: StoryStore,
        client: GenerationClient | None,
        retry_policy: RetryPolicy,
        clock: Callable[[], datetime] = utc_now,
        theme: str | None = None,
        model: str | None = None,
    ) -> None:
        self.repository = repository
        self.client = client
        self.retry_policy = retry_policy
        self.clock = clock
        self.theme = theme
        self.model = model

    def today(self) -> date:
        """Current UTC calendar date."""

        return self.clock().astimezone(UTC).date()

    def get_or_create_today(self, *, cancel_event: threading.Event | None = None) -> Story:
        today = self.today()
        logger.info("Looking up story for %s.", today.isoformat())

        existing = self.repository.find_by_date(today)
        if existing is not None:
            logger.info("Found story for %s (story_id=%s).", today.isoformat(), existing.story_id)
            return existing

        if self.client is None:
            raise ValueError("No generation client configured; cannot create stories.")
        logger.info("No story for %s yet, generating.", today.isoformat())
        generated = self.retry_policy.execute(
            self._generate_once,
            cancel_event=cancel_event,
            label="story generation",
        )

        result = self.repository.insert(
            StoryDraft(
                title=generated.title,
                body=generated.body,
                story_date=today,
                source=self.client.source,
            ),
        )
        if result.outcome is InsertOutcome.CREATED and result.story is not None:
            logger.info(
                "Saved story for %s (story_id=%s).",
                today.isoformat(),
                result.story.story_id,
            )
            return result.story

        if result.outcome is InsertOutcome.ALREADY_EXISTS:
            logger.warning(
                "Another caller saved the story for %s first; discarding generated draft.",
                today.isoformat(),
            )
            winner = self.repository.find_by_date(today)
            if winner is None:
                logger.error(
                    "Store reported a duplicate story for %s but has no such row.",
                    today.isoformat(),
                )
                raise InconsistentState(
                    message=(
                        f"Story for {today.isoformat()} collided on insert "
                        "but could not be read back."
                    ),
                )
            return winner

        raise PersistenceUnavailable(
            message=f"Failed to save story for {today.isoformat()}: {result.error or 'unknown'}",
        )

    def get_by_date(self, story_date: date) -> Story | None:
        story = self.repository.find_by_date(story_date)
        if story is None:
            logger.info("No story for %s.", story_date.isoformat())
        else:
            logger.info("Found story for %s (story_id=%s).", story_date.isoformat(), story.story_id)
        return story

    def list_stories(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> list[Story]:
        """Page through stories, newest date first.

        ``page`` is clamped to ``>= 1`` and ``page_size`` to ``[1, 50]``.
        """

        page = max(1, page)
        page_size = min(max(1, page_size), MAX_PAGE_SIZE)
        offset = (page - 1) * page_size
        if offset > MAX_STORE_OFFSET:
            logger.info("Page %d is past the end of any archive; returning no stories.", page)
            return []
        stories = self.repository.list_stories(
            offset=offset,
            limit=page_size,
            newest_first=True,
        )
        logger.info(
            "Listed %d stories (page=%d page_size=%d).",
            len(stories),
            page,
            page_size,
        )
        return stories

    def latest(self) -> Story | None:
        stories = self.list_stories(page=1, page_size=1)
        return stories[0] if stories else None

    def _generate_once(self) -> GeneratedStory:
        if self.client is None:
            raise ValueError("No generation client configured; cannot create stories.")
        generated = self.client.generate(theme=self.theme, model=self.model)
        return _require_complete(generated)


def _require_complete(generated: GeneratedStory) -> GeneratedStory:
    title = generated.title if isinstance(generated.title, str) else ""
    body = generated.body if isinstance(generated.body, str) else ""
    if not title.strip() or not body.strip():
        raise GenerationFailed(
            message="Generated story is missing a title or a body.",
            code="empty_story",
        )
    return generated
