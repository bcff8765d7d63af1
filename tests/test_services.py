from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, date, datetime

import allure
import pytest
from fakes import FakeGenerationClient, RecordingWait

from daily_story.errors import (
    GenerationCancelled,
    GenerationFailed,
    InconsistentState,
    PersistenceUnavailable,
    RetryExhausted,
)
from daily_story.models import GeneratedStory, InsertOutcome, InsertResult, Story, StoryDraft
from daily_story.repository import StoryRepository
from daily_story.retry import RetryPolicy
from daily_story.services import DailyStoryService

pytestmark = [
    allure.epic("Daily Story"),
    allure.feature("Get Or Create Today"),
]

NOW = datetime(2025, 4, 21, 9, 30, tzinfo=UTC)
TODAY = date(2025, 4, 21)


def _service(
    repository,
    client: FakeGenerationClient | None,
    *,
    wait: RecordingWait | None = None,
    max_attempts: int = 3,
) -> DailyStoryService:
    return DailyStoryService(
        repository=repository,
        client=client,
        retry_policy=RetryPolicy(
            max_attempts=max_attempts,
            initial_delay_seconds=10,
            wait=wait or RecordingWait(),
        ),
        clock=lambda: NOW,
    )


def _seed(repository: StoryRepository, story_date: date, title: str = "Seeded") -> Story:
    result = repository.insert(
        StoryDraft(title=title, body="Once upon a time.", story_date=story_date, source="seed"),
    )
    assert result.story is not None
    return result.story


class _StaleFirstRead:
    """Store whose first lookup misses, as if another writer committed just after it."""

    def __init__(self, inner: StoryRepository) -> None:
        self.inner = inner
        self.reads = 0

    def find_by_date(self, story_date: date) -> Story | None:
        self.reads += 1
        if self.reads == 1:
            return None
        return self.inner.find_by_date(story_date)

    def insert(self, draft: StoryDraft) -> InsertResult:
        return self.inner.insert(draft)

    def list_stories(self, *, offset: int, limit: int, newest_first: bool = True) -> list[Story]:
        return self.inner.list_stories(offset=offset, limit=limit, newest_first=newest_first)


class _ScriptedStore:
    """Store with fixed answers that records list windows."""

    def __init__(self, *, insert_result: InsertResult) -> None:
        self.insert_result = insert_result
        self.inserted: list[StoryDraft] = []
        self.windows: list[tuple[int, int, bool]] = []

    def find_by_date(self, story_date: date) -> Story | None:
        return None

    def insert(self, draft: StoryDraft) -> InsertResult:
        self.inserted.append(draft)
        return self.insert_result

    def list_stories(self, *, offset: int, limit: int, newest_first: bool = True) -> list[Story]:
        self.windows.append((offset, limit, newest_first))
        return []


def test_existing_story_is_returned_without_generation(repository: StoryRepository) -> None:
    seeded = _seed(repository, TODAY)
    client = FakeGenerationClient()

    story = _service(repository, client).get_or_create_today()

    assert story == seeded
    assert client.calls == []


def test_missing_story_is_generated_once_and_then_reused(repository: StoryRepository) -> None:
    client = FakeGenerationClient(
        [GeneratedStory(title="The Lantern", body="It flickered at midnight.")],
        source="openrouter:test-model",
    )
    service = _service(repository, client)

    first = service.get_or_create_today()
    second = service.get_or_create_today()

    assert first.story_date == TODAY
    assert first.title == "The Lantern"
    assert first.source == "openrouter:test-model"
    assert second.story_id == first.story_id
    assert len(client.calls) == 1
    assert len(repository.list_stories(offset=0, limit=10)) == 1


def test_theme_and_model_are_forwarded_to_client(repository: StoryRepository) -> None:
    client = FakeGenerationClient()
    service = DailyStoryService(
        repository=repository,
        client=client,
        retry_policy=RetryPolicy(wait=RecordingWait()),
        clock=lambda: NOW,
        theme="a flooded village",
        model="vendor/model-x",
    )

    service.get_or_create_today()

    assert client.calls == [{"theme": "a flooded village", "model": "vendor/model-x"}]


def test_concurrent_callers_converge_on_single_story(repository: StoryRepository) -> None:
    callers = 4
    client = FakeGenerationClient(barrier=threading.Barrier(callers, timeout=10))
    service = _service(repository, client)
    assert repository.find_by_date(TODAY) is None

    with ThreadPoolExecutor(max_workers=callers) as pool:
        futures = [pool.submit(service.get_or_create_today) for _ in range(callers)]
        stories = [future.result(timeout=30) for future in futures]

    # Every caller missed and generated; the unique date index let one insert through.
    assert len(client.calls) == callers
    assert len({story.story_id for story in stories}) == 1
    assert len({story.title for story in stories}) == 1
    assert [story.story_date for story in repository.list_stories(offset=0, limit=10)] == [TODAY]


def test_collision_returns_the_winning_row(repository: StoryRepository) -> None:
    winner = _seed(repository, TODAY, title="Winner")
    store = _StaleFirstRead(repository)
    client = FakeGenerationClient()

    story = _service(store, client).get_or_create_today()

    assert story == winner
    assert len(client.calls) == 1
    assert store.reads == 2
    assert len(repository.list_stories(offset=0, limit=10)) == 1


def test_collision_without_readable_winner_is_inconsistent() -> None:
    store = _ScriptedStore(insert_result=InsertResult(outcome=InsertOutcome.ALREADY_EXISTS))

    with pytest.raises(InconsistentState):
        _service(store, FakeGenerationClient()).get_or_create_today()

    assert len(store.inserted) == 1


def test_failed_insert_raises_persistence_unavailable() -> None:
    store = _ScriptedStore(
        insert_result=InsertResult(outcome=InsertOutcome.FAILED, error="disk I/O error"),
    )

    with pytest.raises(PersistenceUnavailable, match="disk I/O error"):
        _service(store, FakeGenerationClient()).get_or_create_today()


def test_transient_failures_and_blank_stories_are_retried(repository: StoryRepository) -> None:
    wait = RecordingWait()
    client = FakeGenerationClient(
        [
            GenerationFailed(message="502 from upstream"),
            GeneratedStory(title="   ", body="Body without a title."),
            GeneratedStory(title="Third Time", body="It worked."),
        ],
    )

    story = _service(repository, client, wait=wait).get_or_create_today()

    assert story.title == "Third Time"
    assert len(client.calls) == 3
    assert wait.delays == [10, 20]


def test_exhausted_retries_persist_nothing(repository: StoryRepository) -> None:
    client = FakeGenerationClient([GenerationFailed(message="down")] * 3)

    with pytest.raises(RetryExhausted) as exc_info:
        _service(repository, client).get_or_create_today()

    assert exc_info.value.attempts == 3
    assert len(client.calls) == 3
    assert repository.find_by_date(TODAY) is None


def test_cancelled_generation_persists_nothing(repository: StoryRepository) -> None:
    client = FakeGenerationClient([GenerationFailed(message="down")])
    service = _service(repository, client, wait=RecordingWait(cancelled=True))

    with pytest.raises(GenerationCancelled):
        service.get_or_create_today(cancel_event=threading.Event())

    assert len(client.calls) == 1
    assert repository.find_by_date(TODAY) is None


def test_read_only_service_serves_existing_but_cannot_generate(
    repository: StoryRepository,
) -> None:
    service = _service(repository, client=None)

    with pytest.raises(ValueError, match="No generation client"):
        service.get_or_create_today()

    seeded = _seed(repository, TODAY)
    assert service.get_or_create_today() == seeded


def test_get_by_date_and_latest(repository: StoryRepository) -> None:
    service = _service(repository, client=None)
    assert service.latest() is None

    older = _seed(repository, date(2025, 4, 19), title="Older")
    newer = _seed(repository, date(2025, 4, 20), title="Newer")

    assert service.get_by_date(date(2025, 4, 19)) == older
    assert service.get_by_date(date(2025, 4, 18)) is None
    assert service.latest() == newer


def test_list_pages_newest_first(repository: StoryRepository) -> None:
    for day in (19, 20, 21):
        _seed(repository, date(2025, 4, day), title=f"Day {day}")
    service = _service(repository, client=None)

    assert [story.title for story in service.list_stories(page=1, page_size=2)] == [
        "Day 21",
        "Day 20",
    ]
    assert [story.title for story in service.list_stories(page=2, page_size=2)] == ["Day 19"]
    assert service.list_stories(page=3, page_size=2) == []


@pytest.mark.parametrize(
    ("page", "page_size", "window"),
    [
        (1, 10, (0, 10, True)),
        (0, 1000, (0, 50, True)),
        (-3, 0, (0, 1, True)),
        (3, -7, (2, 1, True)),
        (2, 50, (50, 50, True)),
    ],
)
def test_list_window_is_clamped(page: int, page_size: int, window: tuple[int, int, bool]) -> None:
    store = _ScriptedStore(insert_result=InsertResult(outcome=InsertOutcome.FAILED))

    _service(store, client=None).list_stories(page=page, page_size=page_size)

    assert store.windows == [window]


def test_page_beyond_store_offset_range_is_empty(repository: StoryRepository) -> None:
    _seed(repository, TODAY)
    store = _ScriptedStore(insert_result=InsertResult(outcome=InsertOutcome.FAILED))

    assert _service(repository, client=None).list_stories(page=10**18, page_size=50) == []
    assert _service(store, client=None).list_stories(page=10**18, page_size=50) == []
    assert store.windows == []
