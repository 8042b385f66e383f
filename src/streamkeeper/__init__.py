"""src/streamkeeper/__init__.py

Streamkeeper - resilient, auto-reconnecting stream connections for Python.

Streamkeeper owns one transport connection at a time, watches its liveness
with a connect deadline and a heartbeat deadline, and recovers from drops
with exponential backoff while publishing a small status snapshot.

Key Features:
    - Five-state lifecycle: connecting, connected, waiting, offline, failed
    - Exponential backoff with jitter, bypassed by manual reconnects
    - Heartbeat timeout reset by every inbound frame
    - Zero external dependencies (asyncio WebSocket transport included)

Example:
    Basic usage::

        import asyncio
        from streamkeeper import StreamConnection

        async def main():
            stream = StreamConnection("localhost:3000")
            stream.on("reset", lambda: stream.send('{"msg": "connect"}'))
            stream.on("message", print)
            stream.subscribe(lambda status: print(status.as_dict()))
            await asyncio.sleep(60)
            stream.close()

        asyncio.run(main())
"""

from streamkeeper.connectivity import ConnectivityNotifier
from streamkeeper.events import CallbackHandle
from streamkeeper.exceptions import (
    ConditionKind,
    ConnectTimeout,
    ForcedReconnect,
    HeartbeatTimeout,
    InvalidEventError,
    PermanentDisconnect,
    StreamCondition,
    StreamkeeperError,
    TransportClosed,
)
from streamkeeper.registry import StreamRegistry
from streamkeeper.status import ConnectionStatus, StreamState
from streamkeeper.stream import StreamConnection
from streamkeeper.transport import Transport, WebSocketTransport
from streamkeeper.version import __version__

__all__ = [
    "StreamConnection",
    "StreamRegistry",
    "ConnectionStatus",
    "StreamState",
    "CallbackHandle",
    "ConnectivityNotifier",
    "Transport",
    "WebSocketTransport",
    "StreamkeeperError",
    "InvalidEventError",
    "StreamCondition",
    "ConditionKind",
    "ConnectTimeout",
    "HeartbeatTimeout",
    "TransportClosed",
    "ForcedReconnect",
    "PermanentDisconnect",
    "__version__",
]
