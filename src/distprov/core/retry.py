"""Bounded retry with a fixed delay between attempts.

Artifact downloads fail transiently (timeouts, dropped connections, mirrors
returning 5xx) and are retried a fixed number of times with a constant pause.
Sleeping goes through the Time abstraction so tests never wait.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from distprov.core.time.abc import Time


class RetryExhaustedError(Exception):
    """Raised after every attempt failed; carries the last failure."""

    def __init__(self, description: str, attempts: int, last_error: Exception) -> None:
        super().__init__(f"{description} failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class RetryPolicy:
    """Retry up to `attempts` times, pausing `delay_seconds` between attempts."""

    attempts: int = 3
    delay_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {self.attempts}")
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must not be negative, got {self.delay_seconds}")

    def run[T](
        self,
        operation: Callable[[], T],
        *,
        time: Time,
        logger: logging.Logger | logging.LoggerAdapter,
        description: str,
    ) -> tuple[T, int]:
        """Call operation until it succeeds or attempts run out.

        Only RuntimeError and OSError count as retryable failures; anything
        else is a programming error and propagates immediately.

        Returns:
            The operation's result and the number of attempts it took

        Raises:
            RetryExhaustedError: If every attempt failed
        """
        last_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            if attempt > 1:
                logger.info(
                    "Retrying %s in %.1fs (attempt %d/%d)",
                    description,
                    self.delay_seconds,
                    attempt,
                    self.attempts,
                )
                time.sleep(self.delay_seconds)
            try:
                return operation(), attempt
            except (RuntimeError, OSError) as e:
                last_error = e
                logger.warning(
                    "Attempt %d/%d to %s failed: %s", attempt, self.attempts, description, e
                )

        assert last_error is not None
        raise RetryExhaustedError(description, self.attempts, last_error)
