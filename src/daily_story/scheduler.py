"""Daily trigger for story generation."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, time, timedelta
from enum import Enum
from typing import Protocol

from daily_story.models import Story
from daily_story.storage.common import utc_now

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


class TimerHandle(Protocol):
    """Subset of ``threading.Timer`` used by the scheduler."""

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


class SchedulerState(str, Enum):
    """Lifecycle states; a scheduler is never restarted after STOPPED."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def daemon_timer(delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay_seconds, callback)
    timer.daemon = True
    timer.name = "daily-story-timer"
    return timer


def target_instant(day: datetime, target_time: time) -> datetime:
    """Target instant on the UTC calendar day of ``day``."""

    return datetime.combine(day.astimezone(UTC).date(), target_time, tzinfo=UTC)


def next_occurrence_after(moment: datetime, target_time: time) -> datetime:
    """First target instant strictly after ``moment``."""

    candidate = target_instant(moment, target_time)
    if candidate <= moment:
        candidate += ONE_DAY
    return candidate


class DailyScheduler:
    """Fire ``trigger`` once a day at ``target_time`` (UTC).

    ``start()`` runs the trigger right away when today's target instant has
    already passed, then arms a timer for the next instant. Each fire re-arms
    against the wall clock instead of a fixed 24h period, so the cadence does
    not drift over long uptimes. Errors from a run are logged and dropped.
    """

    def __init__(
        self,
        *,
        trigger: Callable[[], Story],
        target_time: time = time(0, 0),
        clock: Callable[[], datetime] = utc_now,
        timer_factory: TimerFactory = daemon_timer,
    ) -> None:
        if target_time.tzinfo is not None:
            raise ValueError("target_time must be naive; it is interpreted in UTC.")
        self.trigger = trigger
        self.target_time = target_time
        self.clock = clock
        self.timer_factory = timer_factory
        self._lock = threading.Lock()
        self._state = SchedulerState.IDLE
        self._timer: TimerHandle | None = None
        self._next_fire_at: datetime | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def next_fire_at(self) -> datetime | None:
        return self._next_fire_at

    def start(self) -> bool:
        """Start the daily cadence; return False if it is already running."""

        with self._lock:
            if self._state is SchedulerState.RUNNING:
                logger.warning("Daily story scheduler is already running; start ignored.")
                return False
            if self._state is SchedulerState.STOPPED:
                raise RuntimeError("Daily story scheduler was stopped and cannot be restarted.")
            self._state = SchedulerState.RUNNING

        now = self.clock()
        todays_target = target_instant(now, self.target_time)
        logger.info(
            "Starting daily story scheduler (target=%s UTC).",
            self.target_time.strftime("%H:%M"),
        )
        if now >= todays_target:
            logger.info(
                "Today's target %s has passed; running catch-up generation now.",
                todays_target.isoformat(),
            )
            self._run_trigger()

        with self._lock:
            if self._state is SchedulerState.RUNNING:
                self._arm_locked(after=self.clock())
        return True

    def stop(self) -> None:
        """Disarm the timer; a run already in progress is left to finish."""

        with self._lock:
            if self._state is SchedulerState.STOPPED:
                return
            self._state = SchedulerState.STOPPED
            timer, self._timer = self._timer, None
            self._next_fire_at = None
        if timer is not None:
            timer.cancel()
        logger.info("Daily story scheduler stopped.")

    def _arm_locked(self, *, after: datetime) -> None:
        self._arm_at_locked(next_occurrence_after(after, self.target_time))

    def _arm_at_locked(self, fire_at: datetime) -> None:
        delay_seconds = (fire_at - self.clock()).total_seconds()
        timer = self.timer_factory(max(delay_seconds, 0.001), lambda: self._on_timer(fire_at))
        self._timer = timer
        self._next_fire_at = fire_at
        timer.start()
        logger.info(
            "Next daily story run at %s (in %.0fs).",
            fire_at.isoformat(),
            delay_seconds,
        )

    def _on_timer(self, fired_for: datetime) -> None:
        with self._lock:
            if self._state is not SchedulerState.RUNNING:
                return
            if self.clock() < fired_for:
                # Timer sleeps on the monotonic clock; wait out the wall-clock remainder.
                logger.info("Timer woke before %s; re-arming.", fired_for.isoformat())
                self._arm_at_locked(fired_for)
                return
        self._run_trigger()
        with self._lock:
            if self._state is SchedulerState.RUNNING:
                self._arm_locked(after=max(self.clock(), fired_for))

    def _run_trigger(self) -> None:
        started_at = self.clock()
        logger.info("Daily story run started at %s.", started_at.isoformat())
        try:
            story = self.trigger()
        except Exception:
            logger.exception("Daily story run failed.")
            return
        logger.info(
            "Daily story run finished (story_id=%s date=%s).",
            story.story_id,
            story.story_date.isoformat(),
        )
