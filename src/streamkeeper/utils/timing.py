"""src/streamkeeper/utils/timing.py

Deadline configuration and the scheduler interface used by stream timers.
"""

from dataclasses import dataclass
from typing import Any, Callable, Protocol

# Seconds to wait for a transport to open before declaring the attempt failed.
DEFAULT_CONNECT_TIMEOUT = 10.0

# Seconds of inbound silence after which a connection is considered dead.
DEFAULT_HEARTBEAT_TIMEOUT = 100.0


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None:
        """Cancel the callback. Calling it twice is harmless."""


class Scheduler(Protocol):
    """
    Anything able to run a callback later.

    ``asyncio.AbstractEventLoop`` satisfies this interface.
    """

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> TimerHandle:
        """Run ``callback(*args)`` after ``delay`` seconds."""


@dataclass(frozen=True)
class Timeout:
    """
    Deadline configuration.

    Attributes:
        connect: Maximum time to wait for the transport to reach the open state.
        heartbeat: Maximum time allowed between two inbound frames.
    """

    connect: float = DEFAULT_CONNECT_TIMEOUT
    heartbeat: float = DEFAULT_HEARTBEAT_TIMEOUT

    def __post_init__(self) -> None:
        if self.connect <= 0:
            raise ValueError("connect timeout must be positive")
        if self.heartbeat <= 0:
            raise ValueError("heartbeat timeout must be positive")

    @classmethod
    def from_float(cls, connect: float) -> "Timeout":
        """Create a Timeout with a custom connect deadline and the default heartbeat."""
        return cls(connect=connect)
