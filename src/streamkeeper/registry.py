"""src/streamkeeper/registry.py

Explicit registry of stream connections.

Whatever owns several streams (a session manager, a reload hook, ...) keeps
one of these instead of relying on module-level state.
"""

from typing import Any, Iterator, List

from streamkeeper.stream import StreamConnection

__all__ = ["StreamRegistry"]


class StreamRegistry:
    """Tracks stream connections for bulk enumeration and control."""

    __slots__ = ("_connections",)

    def __init__(self) -> None:
        self._connections: List[StreamConnection] = []

    def connect(self, url: str, **options: Any) -> StreamConnection:
        """Create a ``StreamConnection`` with ``options`` and track it."""
        connection = StreamConnection(url, **options)
        self.add(connection)
        return connection

    def add(self, connection: StreamConnection) -> None:
        """Track an existing connection. Adding it twice is a no-op."""
        if connection not in self._connections:
            self._connections.append(connection)

    def remove(self, connection: StreamConnection) -> None:
        """Stop tracking ``connection``. It is not disconnected."""
        if connection in self._connections:
            self._connections.remove(connection)

    def __iter__(self) -> Iterator[StreamConnection]:
        return iter(list(self._connections))

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        return connection in self._connections

    def reconnect_all(self, **options: Any) -> None:
        """Call ``reconnect(**options)`` on every tracked connection."""
        for connection in self:
            connection.reconnect(**options)

    def disconnect_all(self, **options: Any) -> None:
        """Call ``disconnect(**options)`` on every tracked connection."""
        for connection in self:
            connection.disconnect(**options)
