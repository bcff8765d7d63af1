"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from fakes import RecordingWait

from daily_story.repository import StoryRepository


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("DAILY_STORY_") or name == "OPENROUTER_API_KEY":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[StoryRepository]:
    repo = StoryRepository(tmp_path / "stories.db")
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def recording_wait() -> RecordingWait:
    return RecordingWait()
