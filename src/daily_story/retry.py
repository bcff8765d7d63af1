"""Bounded exponential-backoff retry for generation calls."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from daily_story.errors import GenerationCancelled, GenerationFailed, RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_SECONDS = 10.0

WaitFn = Callable[[float, threading.Event | None], bool]


def interruptible_wait(seconds: float, cancel_event: threading.Event | None) -> bool:
    """Sleep for ``seconds``; return True if ``cancel_event`` fired first."""

    if cancel_event is None:
        time.sleep(seconds)
        return False
    return cancel_event.wait(seconds)


class RetryPolicy:
    """Run an operation up to ``max_attempts`` times with doubling delays.

    Delays go ``initial``, ``2 * initial``, ``4 * initial`` ... and are capped
    by ``max_delay_seconds`` when it is set. Only exceptions listed in
    ``retry_on`` are retried; anything else propagates from the first call.
    """

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay_seconds: float = DEFAULT_INITIAL_DELAY_SECONDS,
        max_delay_seconds: float | None = None,
        retry_on: tuple[type[BaseException], ...] = (GenerationFailed,),
        wait: WaitFn = interruptible_wait,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if max_delay_seconds is not None and max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        self.max_attempts = max_attempts
        self.initial_delay_seconds = initial_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.retry_on = retry_on
        self._wait = wait

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""

        delay = self.initial_delay_seconds * (2 ** max(attempt - 1, 0))
        if self.max_delay_seconds is not None:
            return min(delay, self.max_delay_seconds)
        return delay

    def execute(
        self,
        operation: Callable[[], T],
        *,
        cancel_event: threading.Event | None = None,
        label: str = "generation",
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            _raise_if_cancelled(cancel_event, label=label)
            try:
                return operation()
            except GenerationCancelled:
                raise
            except self.retry_on as error:
                if attempt >= self.max_attempts:
                    logger.error(
                        "%s failed after %d attempts: %s",
                        label,
                        attempt,
                        error,
                    )
                    raise RetryExhausted(
                        message=f"{label} failed after {attempt} attempts: {error}",
                        attempts=attempt,
                        last_error=error,
                    ) from error

                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed (attempt %d of %d), retrying in %.1fs: %s",
                    label,
                    attempt,
                    self.max_attempts,
                    delay,
                    error,
                )
                if self._wait(delay, cancel_event):
                    raise GenerationCancelled(
                        message=f"{label} cancelled while waiting to retry",
                    ) from error


def _raise_if_cancelled(cancel_event: threading.Event | None, *, label: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise GenerationCancelled(message=f"{label} cancelled before attempt")
