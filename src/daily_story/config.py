"""Runtime configuration for story generation and scheduling."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import time
from pathlib import Path
from urllib.parse import urlparse


@dataclass(slots=True)
class GenerationSettings:
    """Text-generation provider settings (OpenAI-compatible endpoint)."""

    api_key: str = ""
    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "google/gemini-2.5-pro-preview"
    max_tokens: int = 3000
    temperature: float = 1.0
    request_timeout_seconds: float = 120.0
    site_url: str | None = None
    app_name: str | None = None
    source_tag: str = ""
    language: str = "Chinese"


@dataclass(slots=True)
class RetrySettings:
    """Backoff policy for generation calls."""

    max_attempts: int = 3
    initial_delay_seconds: float = 10.0
    max_delay_seconds: float | None = None


@dataclass(slots=True)
class ScheduleSettings:
    """Daily trigger settings; the target time is interpreted in UTC."""

    target_time: time = time(0, 0)


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".daily_story.db")
    sqlite_busy_timeout_ms: int = 5000
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("DAILY_STORY_DB_PATH", ".daily_story.db")),
            sqlite_busy_timeout_ms=int(os.getenv("DAILY_STORY_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            generation=GenerationSettings(
                api_key=os.getenv(
                    "DAILY_STORY_API_KEY",
                    os.getenv("OPENROUTER_API_KEY", ""),
                ).strip(),
                base_url=os.getenv("DAILY_STORY_BASE_URL", "https://openrouter.ai/api/v1").strip(),
                model=os.getenv("DAILY_STORY_MODEL", "google/gemini-2.5-pro-preview").strip(),
                max_tokens=int(os.getenv("DAILY_STORY_MAX_TOKENS", "3000")),
                temperature=float(os.getenv("DAILY_STORY_TEMPERATURE", "1.0")),
                request_timeout_seconds=float(
                    os.getenv("DAILY_STORY_REQUEST_TIMEOUT_SECONDS", "120"),
                ),
                site_url=_env_optional("DAILY_STORY_SITE_URL"),
                app_name=_env_optional("DAILY_STORY_APP_NAME"),
                source_tag=os.getenv("DAILY_STORY_SOURCE_TAG", "").strip(),
                language=os.getenv("DAILY_STORY_LANGUAGE", "Chinese").strip() or "Chinese",
            ),
            retry=RetrySettings(
                max_attempts=int(os.getenv("DAILY_STORY_RETRY_MAX_ATTEMPTS", "3")),
                initial_delay_seconds=float(
                    os.getenv("DAILY_STORY_RETRY_INITIAL_DELAY_SECONDS", "10"),
                ),
                max_delay_seconds=_env_optional_float("DAILY_STORY_RETRY_MAX_DELAY_SECONDS"),
            ),
            schedule=ScheduleSettings(
                target_time=parse_time_of_day(os.getenv("DAILY_STORY_TARGET_TIME", "00:00")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("DAILY_STORY_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.retry.max_attempts < 1:
            raise ValueError("DAILY_STORY_RETRY_MAX_ATTEMPTS must be >= 1.")
        if self.retry.initial_delay_seconds < 0:
            raise ValueError("DAILY_STORY_RETRY_INITIAL_DELAY_SECONDS must be >= 0.")
        if self.retry.max_delay_seconds is not None and self.retry.max_delay_seconds < 0:
            raise ValueError("DAILY_STORY_RETRY_MAX_DELAY_SECONDS must be >= 0.")
        if self.generation.max_tokens <= 0:
            raise ValueError("DAILY_STORY_MAX_TOKENS must be a positive integer.")
        if not 0.0 <= self.generation.temperature <= 2.0:
            raise ValueError("DAILY_STORY_TEMPERATURE must be between 0 and 2.")
        if self.generation.request_timeout_seconds <= 0:
            raise ValueError("DAILY_STORY_REQUEST_TIMEOUT_SECONDS must be > 0.")

    def validate_for_generation(self) -> None:
        """Raise configuration error if the generation provider cannot be called."""

        self.validate()
        if not self.generation.api_key:
            raise ValueError(
                "Generation API key is not set. "
                "Set DAILY_STORY_API_KEY (or OPENROUTER_API_KEY).",
            )
        parsed = urlparse(self.generation.base_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "Invalid DAILY_STORY_BASE_URL: "
                f"{self.generation.base_url!r}. Expected an absolute http(s) URL.",
            )
        if not self.generation.model:
            raise ValueError("DAILY_STORY_MODEL must not be empty.")


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` (24h clock) into a naive time."""

    token = value.strip()
    try:
        hours_raw, minutes_raw = token.split(":", 1)
        return time(int(hours_raw), int(minutes_raw))
    except ValueError as error:
        raise ValueError(
            f"Invalid time of day: {value!r}. Expected HH:MM in 24h format.",
        ) from error


def _env_optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _env_optional_float(name: str) -> float | None:
    value = _env_optional(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid float value for {name}: {value!r}") from error
