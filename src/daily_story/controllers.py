"""Controllers for story CLI commands."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from daily_story.config import Settings
from daily_story.generation import GenerationClient, OpenRouterStoryClient
from daily_story.models import Story
from daily_story.repository import StoryRepository
from daily_story.retry import RetryPolicy
from daily_story.scheduler import DailyScheduler
from daily_story.services import DEFAULT_PAGE_SIZE, DailyStoryService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GenerateCommand:
    """CLI input for get-or-create of today's story."""

    db_path: Path | None
    theme: str | None = None
    model: str | None = None


@dataclass(slots=True)
class ShowCommand:
    """CLI input for reading one story."""

    db_path: Path | None
    story_date: date | None


@dataclass(slots=True)
class ListCommand:
    """CLI input for paging through stories."""

    db_path: Path | None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


@dataclass(slots=True)
class ServeCommand:
    """CLI input for the long-running scheduler."""

    db_path: Path | None
    theme: str | None = None
    model: str | None = None


@dataclass(slots=True)
class ShowResult:
    """Story lookup report to render in CLI."""

    lines: list[str]
    found: bool


def build_generation_client(settings: Settings) -> GenerationClient:
    settings.validate_for_generation()
    return OpenRouterStoryClient(settings.generation)


def build_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.retry.max_attempts,
        initial_delay_seconds=settings.retry.initial_delay_seconds,
        max_delay_seconds=settings.retry.max_delay_seconds,
    )


class StoryCliController:
    """Coordinates generation, reading, and scheduling CLI operations."""

    def generate(self, command: GenerateCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        client = build_generation_client(settings)
        with _repository(settings) as repository:
            service = _service(
                settings=settings,
                repository=repository,
                client=client,
                theme=command.theme,
                model=command.model,
            )
            story = service.get_or_create_today()
        return _render_story(story)

    def show(self, command: ShowCommand) -> ShowResult:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate()
        with _repository(settings) as repository:
            service = _service(settings=settings, repository=repository, client=None)
            story = (
                service.latest()
                if command.story_date is None
                else service.get_by_date(command.story_date)
            )
        if story is None:
            target = command.story_date.isoformat() if command.story_date else "any date"
            return ShowResult(lines=[f"Story not found: {target}"], found=False)
        return ShowResult(lines=_render_story(story), found=True)

    def list_stories(self, command: ListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate()
        with _repository(settings) as repository:
            service = _service(settings=settings, repository=repository, client=None)
            stories = service.list_stories(page=command.page, page_size=command.page_size)
        if not stories:
            return ["No stories."]
        return [
            f"{story.story_date.isoformat()} story_id={story.story_id} "
            f"source={story.source or '-'} title={story.title}"
            for story in stories
        ]

    def serve(
        self,
        command: ServeCommand,
        *,
        stop_event: threading.Event | None = None,
    ) -> list[str]:
        """Run the daily scheduler until ``stop_event`` is set or a signal arrives."""

        settings = Settings.from_env(db_path=command.db_path)
        client = build_generation_client(settings)
        stop_event = stop_event or threading.Event()
        with _repository(settings) as repository:
            service = _service(
                settings=settings,
                repository=repository,
                client=client,
                theme=command.theme,
                model=command.model,
            )
            scheduler = DailyScheduler(
                trigger=lambda: service.get_or_create_today(cancel_event=stop_event),
                target_time=settings.schedule.target_time,
            )
            with _signal_handlers(stop_event):
                try:
                    scheduler.start()
                    stop_event.wait()
                finally:
                    scheduler.stop()
        return ["Scheduler stopped."]


def _service(
    *,
    settings: Settings,
    repository: StoryRepository,
    client: GenerationClient | None,
    theme: str | None = None,
    model: str | None = None,
) -> DailyStoryService:
    return DailyStoryService(
        repository=repository,
        client=client,
        retry_policy=build_retry_policy(settings),
        theme=theme,
        model=model,
    )


def _render_story(story: Story) -> list[str]:
    return [
        f"Story {story.story_date.isoformat()} "
        f"(story_id={story.story_id} source={story.source or '-'} "
        f"created_at={story.created_at.isoformat()})",
        f"Title: {story.title}",
        "",
        story.body,
    ]


@contextmanager
def _repository(settings: Settings) -> Iterator[StoryRepository]:
    repository = StoryRepository(
        db_path=settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()


@contextmanager
def _signal_handlers(stop_event: threading.Event) -> Iterator[None]:
    if not hasattr(signal, "SIGINT"):
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, _: object | None) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        logger.info("Received %s, shutting down scheduler.", name)
        stop_event.set()

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        yield
        return

    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
