"""src/streamkeeper/transport/__init__.py

Transport layer module for Streamkeeper.

This module provides the abstract transport consumed by stream connections
and a WebSocket implementation built on asyncio TCP/TLS streams.
"""

from .base import Transport
from .connection import AsyncConnection
from .websocket import WebSocketTransport

__all__ = ["Transport", "AsyncConnection", "WebSocketTransport"]
