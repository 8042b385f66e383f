"""src/streamkeeper/utils/retry.py

Exponential backoff with randomized jitter.

The delay for attempt ``count`` is::

    min_timeout                                              if count < min_count
    min(max_timeout, base_timeout * exponent ** count) * jitter   otherwise

where ``jitter`` is drawn uniformly from ``[1 - fuzz / 2, 1 + fuzz / 2)``.
The first ``min_count`` attempts therefore retry almost immediately, after
which delays grow quickly towards ``max_timeout``.
"""

import random
from typing import Any, Callable, Optional

from streamkeeper.utils.log import get_logger
from streamkeeper.utils.timing import Scheduler, TimerHandle

__all__ = ["RetryPolicy"]

logger = get_logger(__name__)


class RetryPolicy:
    """
    Computes backoff delays and owns at most one scheduled retry.

    Attributes:
        base_timeout: Delay (seconds) multiplied by ``exponent ** count``.
        exponent: Growth factor per attempt.
        max_timeout: Upper bound (seconds) before jitter is applied.
        min_timeout: Delay (seconds) for the first ``min_count`` attempts.
        min_count: Number of attempts that use ``min_timeout``.
        fuzz: Width of the jitter band, 0 disables jitter.
    """

    __slots__ = (
        "scheduler",
        "base_timeout",
        "exponent",
        "max_timeout",
        "min_timeout",
        "min_count",
        "fuzz",
        "_timer",
    )

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        base_timeout: float = 1.0,
        exponent: float = 2.2,
        max_timeout: float = 5 * 60.0,
        min_timeout: float = 0.01,
        min_count: int = 2,
        fuzz: float = 0.5,
    ) -> None:
        self.scheduler = scheduler
        self.base_timeout = base_timeout
        self.exponent = exponent
        self.max_timeout = max_timeout
        self.min_timeout = min_timeout
        self.min_count = min_count
        self.fuzz = fuzz
        self._timer: Optional[TimerHandle] = None

    @property
    def pending(self) -> bool:
        """Whether a retry is currently scheduled."""
        return self._timer is not None

    def delay_for(self, count: int) -> float:
        """Return the backoff delay in seconds for attempt ``count``."""
        if count < self.min_count:
            return self.min_timeout

        timeout = min(self.max_timeout, self.base_timeout * self.exponent**count)
        # Spread reconnects so many clients do not hammer a server at once.
        return timeout * (random.random() * self.fuzz + (1 - self.fuzz / 2))

    def retry_later(self, count: int, callback: Callable[[], Any]) -> float:
        """
        Schedule ``callback`` after the backoff delay for ``count``.

        Any previously scheduled retry is cancelled first.

        Returns:
            The chosen delay in seconds.
        """
        self.clear()
        delay = self.delay_for(count)

        def _fire() -> None:
            self._timer = None
            callback()

        self._timer = self.scheduler.call_later(delay, _fire)
        logger.debug("Retry %d scheduled in %.3fs", count, delay)
        return delay

    def clear(self) -> None:
        """Cancel the pending retry, if any."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
