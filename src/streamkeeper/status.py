"""src/streamkeeper/status.py

Connection status snapshots and their broadcaster.

A ``ConnectionStatus`` is immutable: every transition builds a new snapshot
and hands it to ``StatusBroadcaster.publish``, which stores it and then
notifies observers in subscription order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

__all__ = ["StreamState", "ConnectionStatus", "StatusBroadcaster"]


class StreamState(str, Enum):
    """Lifecycle states of a stream connection."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    WAITING = "waiting"
    OFFLINE = "offline"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ConnectionStatus:
    """
    Value snapshot of a stream connection.

    Attributes:
        status: Current ``StreamState``.
        connected: ``True`` exactly when ``status`` is ``CONNECTED``.
        retry_count: Automatic retries since the last successful connect.
        retry_time: Epoch seconds of the next retry, only while waiting.
        reason: Caller-supplied payload of a permanent failure.
    """

    status: StreamState = StreamState.CONNECTING
    retry_count: int = 0
    retry_time: Optional[float] = None
    reason: Any = None

    @property
    def connected(self) -> bool:
        return self.status is StreamState.CONNECTED

    def as_dict(self) -> Dict[str, Any]:
        """Render the snapshot as a plain dict, omitting absent optional fields."""
        data: Dict[str, Any] = {
            "status": self.status.value,
            "connected": self.connected,
            "retry_count": self.retry_count,
        }
        if self.retry_time is not None:
            data["retry_time"] = self.retry_time
        if self.reason is not None:
            data["reason"] = self.reason
        return data


StatusObserver = Callable[[ConnectionStatus], Any]


class StatusBroadcaster:
    """Holds the current status and notifies observers when it changes."""

    __slots__ = ("_current", "_observers")

    def __init__(self, initial: Optional[ConnectionStatus] = None) -> None:
        self._current = initial or ConnectionStatus()
        self._observers: List[StatusObserver] = []

    @property
    def current(self) -> ConnectionStatus:
        return self._current

    def publish(self, status: ConnectionStatus) -> None:
        """Replace the current snapshot, then notify every observer."""
        self._current = status
        for observer in list(self._observers):
            observer(status)

    def subscribe(self, observer: StatusObserver) -> Callable[[], None]:
        """
        Register ``observer`` to be called with each new snapshot.

        Returns:
            A callable that removes the observer. Calling it twice is harmless.
        """
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe
