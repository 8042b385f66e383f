"""src/streamkeeper/heartbeat.py

Liveness deadline driven by inbound frames.
"""

from typing import Callable, Optional

from streamkeeper.exceptions import HeartbeatTimeout
from streamkeeper.utils.log import get_logger
from streamkeeper.utils.timing import DEFAULT_HEARTBEAT_TIMEOUT, Scheduler, TimerHandle

__all__ = ["HeartbeatMonitor"]

logger = get_logger(__name__)


class HeartbeatMonitor:
    """
    Single-shot deadline timer re-armed by every inbound frame.

    When the deadline elapses, ``on_timeout`` is called with a
    ``HeartbeatTimeout`` condition.

    Attributes:
        scheduler: Timer source (usually the event loop).
        timeout: Seconds of silence tolerated.
    """

    __slots__ = ("scheduler", "timeout", "_on_timeout", "_timer")

    def __init__(
        self,
        scheduler: Scheduler,
        on_timeout: Callable[[HeartbeatTimeout], None],
        timeout: float = DEFAULT_HEARTBEAT_TIMEOUT,
    ) -> None:
        self.scheduler = scheduler
        self.timeout = timeout
        self._on_timeout = on_timeout
        self._timer: Optional[TimerHandle] = None

    @property
    def active(self) -> bool:
        """Whether a deadline is currently armed."""
        return self._timer is not None

    def reset(self) -> None:
        """Cancel the current deadline and start a new one."""
        self.cancel()
        self._timer = self.scheduler.call_later(self.timeout, self._expired)

    def cancel(self) -> None:
        """Disarm the deadline. Safe to call when nothing is armed."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expired(self) -> None:
        self._timer = None
        logger.debug("Heartbeat deadline of %.1fs elapsed", self.timeout)
        self._on_timeout(HeartbeatTimeout())
