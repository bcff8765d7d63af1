"""SQLModel ORM tables for story storage."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Column, Date, DateTime, Index, Text
from sqlmodel import Field, SQLModel

STORY_DATE_UNIQUE_INDEX = "uq_stories_story_date"


class StoryRow(SQLModel, table=True):
    __tablename__ = "stories"  # type: ignore[bad-override]
    __table_args__ = (Index(STORY_DATE_UNIQUE_INDEX, "story_date", unique=True),)

    story_id: int | None = Field(default=None, primary_key=True)
    title: str = Field(sa_column=Column(Text, nullable=False))
    body: str = Field(sa_column=Column(Text, nullable=False))
    story_date: date = Field(sa_column=Column(Date, nullable=False))
    source: str | None = None
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
