"""src/streamkeeper/events.py

Fixed-vocabulary callback registry for stream events.
"""

import itertools
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple

from streamkeeper.exceptions import InvalidEventError

__all__ = ["EVENT_NAMES", "CallbackHandle", "EventBus"]

EVENT_NAMES: Tuple[str, ...] = ("message", "reset", "disconnect")


@dataclass(frozen=True)
class CallbackHandle:
    """Opaque token returned by ``EventBus.on`` and accepted by ``EventBus.off``."""

    event: str
    handle_id: int


class EventBus:
    """
    Ordered callbacks keyed by event name.

    Only the names in ``EVENT_NAMES`` are accepted. Callbacks for one event
    run in registration order. Exceptions raised by a callback propagate to
    whoever emitted the event.
    """

    __slots__ = ("_callbacks", "_handle_ids")

    def __init__(self) -> None:
        self._callbacks: Dict[str, List[Tuple[int, Callable[..., Any]]]] = {
            name: [] for name in EVENT_NAMES
        }
        self._handle_ids = itertools.count(1)

    def on(self, name: str, callback: Callable[..., Any]) -> CallbackHandle:
        """
        Register ``callback`` for event ``name``.

        Raises:
            InvalidEventError: If ``name`` is not a known event.
        """
        if name not in self._callbacks:
            raise InvalidEventError(name)

        handle = CallbackHandle(name, next(self._handle_ids))
        self._callbacks[name].append((handle.handle_id, callback))
        return handle

    def off(self, handle: CallbackHandle) -> None:
        """Remove the callback registered under ``handle``. Unknown handles are ignored."""
        callbacks = self._callbacks.get(handle.event)
        if not callbacks:
            return

        self._callbacks[handle.event] = [
            entry for entry in callbacks if entry[0] != handle.handle_id
        ]

    def emit(self, name: str, *args: Any) -> None:
        """Call every callback registered for ``name`` with ``args``."""
        # Iterate over a snapshot: callbacks may register or remove callbacks.
        for _, callback in list(self._callbacks[name]):
            callback(*args)

    def count(self, name: str) -> int:
        """Number of callbacks registered for ``name``."""
        return len(self._callbacks[name])
