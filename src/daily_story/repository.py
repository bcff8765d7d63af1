"""SQLModel-backed storage facade for daily stories."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from daily_story.errors import PersistenceUnavailable
from daily_story.models import InsertOutcome, InsertResult, Story, StoryDraft
from daily_story.storage.alembic_runner import upgrade_head
from daily_story.storage.common import build_sqlite_engine, to_utc_aware, utc_now
from daily_story.storage.sqlmodel_models import StoryRow

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 5000


class StoryStore(Protocol):
    """Persistence operations consumed by the story service."""

    def find_by_date(self, story_date: date) -> Story | None:
        """Return the story stored for ``story_date``, if any."""

    def insert(self, draft: StoryDraft) -> InsertResult:
        """Persist a new story; a date collision is reported, not raised."""

    def list_stories(self, *, offset: int, limit: int, newest_first: bool = True) -> list[Story]:
        """Return a page of stories ordered by date."""


class StoryRepository:
    """Story persistence backed by SQLModel + SQLite.

    Every call opens its own session, so one repository can be shared by the
    scheduler thread and any number of reader threads. The one-story-per-day
    rule is enforced by the unique index on ``story_date``.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        sqlite_busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(
            db_path=db_path,
            busy_timeout_ms=sqlite_busy_timeout_ms,
        )

    def close(self) -> None:
        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations up to head."""

        upgrade_head(self.db_path)

    def find_by_date(self, story_date: date) -> Story | None:
        try:
            with Session(self.engine) as session:
                row = session.exec(
                    select(StoryRow).where(StoryRow.story_date == story_date),
                ).one_or_none()
                return _to_story(row) if row is not None else None
        except SQLAlchemyError as error:
            raise PersistenceUnavailable(
                message=f"Failed to read story for {story_date.isoformat()}: {error}",
            ) from error

    def insert(self, draft: StoryDraft) -> InsertResult:
        with Session(self.engine) as session:
            row = StoryRow(
                title=draft.title,
                body=draft.body,
                story_date=draft.story_date,
                source=draft.source,
                created_at=utc_now(),
            )
            session.add(row)
            try:
                session.commit()
                session.refresh(row)
            except IntegrityError as error:
                session.rollback()
                if _is_unique_violation(error):
                    logger.info(
                        "Story for %s already exists, insert skipped.",
                        draft.story_date.isoformat(),
                    )
                    return InsertResult(outcome=InsertOutcome.ALREADY_EXISTS)
                return InsertResult(outcome=InsertOutcome.FAILED, error=str(error.orig))
            except SQLAlchemyError as error:
                session.rollback()
                return InsertResult(outcome=InsertOutcome.FAILED, error=str(error))
            return InsertResult(outcome=InsertOutcome.CREATED, story=_to_story(row))

    def list_stories(self, *, offset: int, limit: int, newest_first: bool = True) -> list[Story]:
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit <= 0:
            raise ValueError("limit must be > 0")

        order = (
            col(StoryRow.story_date).desc() if newest_first else col(StoryRow.story_date).asc()
        )
        try:
            with Session(self.engine) as session:
                rows = session.exec(
                    select(StoryRow).order_by(order).offset(offset).limit(limit),
                ).all()
                return [_to_story(row) for row in rows]
        except SQLAlchemyError as error:
            raise PersistenceUnavailable(message=f"Failed to list stories: {error}") from error


def _is_unique_violation(error: IntegrityError) -> bool:
    return getattr(error.orig, "sqlite_errorname", "") == "SQLITE_CONSTRAINT_UNIQUE"


def _to_story(row: StoryRow) -> Story:
    if row.story_id is None:
        raise RuntimeError("Story row has no primary key; it was never flushed.")
    return Story(
        story_id=row.story_id,
        title=row.title,
        body=row.body,
        story_date=row.story_date,
        source=row.source,
        created_at=to_utc_aware(row.created_at),
    )
