"""src/streamkeeper/transport/connection.py

TCP and TLS stream opening for asyncio transports.

This module provides low-level connection handling with support for
TLS encryption and proper error handling for network operations.
"""

import asyncio
import ssl
from typing import Optional

from streamkeeper.exceptions import NetworkError, TlsError

__all__ = ["AsyncConnection"]


class AsyncConnection:
    """
    Manages asynchronous TCP and TLS connection creation and lifecycle.

    Attributes:
        host: The target hostname or IP address.
        port: The target port number.
        use_ssl: Whether to use TLS encryption.
        timeout: Seconds allowed for the TCP/TLS connect, or None.
        reader: Stream reader once open.
        writer: Stream writer once open.
    """

    __slots__ = ("host", "port", "use_ssl", "timeout", "reader", "writer")

    def __init__(
        self,
        host: str,
        port: int,
        use_ssl: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.use_ssl = use_ssl
        self.timeout = timeout
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None

    async def open(self) -> None:
        """Open the TCP connection, wrapping it in TLS if requested."""
        ssl_context = ssl.create_default_context() if self.use_ssl else None

        try:
            coro = asyncio.open_connection(self.host, self.port, ssl=ssl_context)
            if self.timeout:
                self.reader, self.writer = await asyncio.wait_for(
                    coro, timeout=self.timeout
                )

            else:
                self.reader, self.writer = await coro

        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Connection to {self.host}:{self.port} timed out"
            ) from e

        except ssl.SSLError as e:
            raise TlsError(f"TLS connection failed: {e}") from e

        except OSError as e:
            raise NetworkError(
                f"Failed to connect to {self.host}:{self.port}: {e}"
            ) from e

    def is_usable(self) -> bool:
        """Check if connection is usable."""
        if not self.writer:
            return False

        return not self.writer.is_closing()

    def close(self) -> None:
        """Close the writer without waiting for the transport to drain."""
        if self.writer:
            try:
                self.writer.close()
            except RuntimeError:
                # Event loop already closed.
                pass

        self.reader = None
        self.writer = None
