"""src/streamkeeper/exceptions.py

Streamkeeper Exceptions hierarchy.

Two families live here:

    - Errors: raised synchronously (``InvalidEventError``) or inside transports
      (``NetworkError`` and friends). Transport errors never escape a
      ``StreamConnection``; they are converted into conditions.
    - Conditions: ``StreamCondition`` subclasses describing *why* a connection
      was lost. They are handed to ``disconnect`` callbacks or stored as the
      ``reason`` of a failed status, never raised to the caller.
"""

from enum import Enum
from typing import Any, ClassVar, Optional


class StreamkeeperError(Exception):
    """Base exception for all Streamkeeper errors."""


class InvalidEventError(StreamkeeperError, ValueError):
    """Callback registered for an event name outside the known vocabulary."""

    def __init__(self, name: str):
        super().__init__(f"unknown event type: {name}")
        self.name = name


class NetworkError(StreamkeeperError):
    """
    Base exception for network-related errors.
    Wraps socket errors and other connection issues.
    """


class TlsError(NetworkError):
    """TLS/SSL handshake or verification errors."""


class WebSocketError(NetworkError):
    """WebSocket handshake or framing errors."""


class ConditionKind(str, Enum):
    """Kinds of connection-loss conditions."""

    CONNECT_TIMEOUT = "connect_timeout"
    HEARTBEAT_TIMEOUT = "heartbeat_timeout"
    TRANSPORT_CLOSED = "transport_closed"
    FORCED_RECONNECT = "forced_reconnect"
    PERMANENT_DISCONNECT = "permanent_disconnect"


class StreamCondition(StreamkeeperError):
    """
    Base class for connection-loss conditions.

    Attributes:
        kind: The ``ConditionKind`` of this condition.
    """

    kind: ClassVar[ConditionKind]
    default_message: ClassVar[str] = "Connection lost"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class ConnectTimeout(StreamCondition):
    """The connect deadline elapsed before the transport opened."""

    kind = ConditionKind.CONNECT_TIMEOUT
    default_message = "Stream connection timed out"


class HeartbeatTimeout(StreamCondition):
    """No inbound frame arrived within the heartbeat window."""

    kind = ConditionKind.HEARTBEAT_TIMEOUT
    default_message = "Heartbeat timed out"


class TransportClosed(StreamCondition):
    """The transport closed or failed ungracefully."""

    kind = ConditionKind.TRANSPORT_CLOSED
    default_message = "Transport closed"


class ForcedReconnect(StreamCondition):
    """The caller asked to tear down a live connection and reconnect."""

    kind = ConditionKind.FORCED_RECONNECT
    default_message = "Forced reconnect"


class PermanentDisconnect(StreamCondition):
    """
    The caller permanently shut the stream down.

    Attributes:
        reason: Optional caller-supplied payload (e.g. a version mismatch).
    """

    kind = ConditionKind.PERMANENT_DISCONNECT
    default_message = "Permanently disconnected"

    def __init__(self, reason: Any = None, message: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
