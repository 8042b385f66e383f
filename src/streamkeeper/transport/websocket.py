"""src/streamkeeper/transport/websocket.py

WebSocket client transport on asyncio streams.
"""

# pylint: disable=too-many-instance-attributes,too-many-arguments,broad-exception-caught

import asyncio
import base64
import os
import urllib.parse
from typing import Dict, List, Optional, Union

from streamkeeper.exceptions import WebSocketError
from streamkeeper.transport.base import Transport
from streamkeeper.transport.connection import AsyncConnection
from streamkeeper.utils.log import get_logger
from streamkeeper.utils.websocket_utils import (
    OPCODE_BINARY,
    OPCODE_CLOSE,
    OPCODE_CONTINUATION,
    OPCODE_PING,
    OPCODE_PONG,
    OPCODE_TEXT,
    build_handshake_request,
    compute_accept_key,
    create_frame,
    parse_handshake_response,
    read_frame,
)

__all__ = ["MAX_FRAME_SIZE", "WebSocketTransport"]

logger = get_logger(__name__)

# Maximum frame payload size (10 MB)
MAX_FRAME_SIZE = 10 * 1024 * 1024

# Upper bound for the handshake response head.
MAX_HANDSHAKE_SIZE = 64 * 1024


class WebSocketTransport(Transport):
    """
    Event-driven WebSocket client.

    ``start()`` spawns a task on ``loop`` that connects, performs the upgrade
    handshake and then pumps frames into the handler attributes. Ping and pong
    frames are reported through ``on_heartbeat``; pings are answered.
    """

    def __init__(
        self,
        url: str,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        subprotocols: Optional[List[str]] = None,
        max_frame_size: int = MAX_FRAME_SIZE,
    ) -> None:
        super().__init__(url)
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in ("ws", "wss"):
            raise ValueError("URL must use ws:// or wss:// scheme")

        if not parsed.hostname:
            raise ValueError("Invalid URL: Hostname missing")

        self.host: str = parsed.hostname
        self.port = parsed.port or (443 if parsed.scheme == "wss" else 80)
        self.use_ssl = parsed.scheme == "wss"
        self.path = parsed.path or "/"
        if parsed.query:
            self.path += f"?{parsed.query}"

        self.loop = loop
        self.timeout = timeout
        self.headers = headers or {}
        self.subprotocols = subprotocols or []
        self.max_frame_size = max_frame_size
        self.connection: Optional[AsyncConnection] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    def start(self) -> None:
        """Spawn the connect-and-read task."""
        if self._task is not None:
            raise RuntimeError("Transport already started")

        loop = self.loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._run())

    def send(self, data: Union[str, bytes]) -> None:
        """Write one masked frame. Text for ``str``, binary for ``bytes``."""
        if self.connection is None or not self.connection.is_usable():
            logger.debug("Dropping frame, socket is not writable")
            return

        opcode = OPCODE_TEXT if isinstance(data, str) else OPCODE_BINARY
        payload = data.encode("utf-8") if isinstance(data, str) else data
        self._write(create_frame(payload, opcode=opcode, mask=True))

    def close(self) -> None:
        """Stop reading and close the socket. Never raises."""
        if self._closed:
            return
        self._closed = True

        if self.connection is not None:
            if self.connection.is_usable():
                self._write(create_frame(b"", opcode=OPCODE_CLOSE, mask=True))
            self.connection.close()
            self.connection = None

        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _write(self, frame: bytes) -> None:
        if self.connection is None or self.connection.writer is None:
            return
        try:
            self.connection.writer.write(frame)
        except (OSError, RuntimeError) as exc:
            # The read side reports the broken socket.
            logger.warning("Write to %s failed: %s", self.url, exc)

    async def _run(self) -> None:
        try:
            await self._handshake()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._fail(exc)
            return

        if self._closed:
            return
        self.on_open()

        try:
            await self._read_loop()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._fail(exc)
            return

        self._fail(None)

    async def _handshake(self) -> None:
        self.connection = AsyncConnection(
            self.host, self.port, use_ssl=self.use_ssl, timeout=self.timeout
        )
        await self.connection.open()

        reader = self.connection.reader
        writer = self.connection.writer
        if reader is None or writer is None:
            raise WebSocketError("Failed to establish stream connection")

        key = base64.b64encode(os.urandom(16)).decode("ascii")
        writer.write(
            build_handshake_request(
                self.host,
                self.port,
                self.path,
                key,
                headers=self.headers,
                subprotocols=self.subprotocols,
            )
        )
        await writer.drain()

        try:
            head = await reader.readuntil(b"\r\n\r\n")
        except asyncio.IncompleteReadError as exc:
            raise WebSocketError("Connection closed during handshake") from exc
        except asyncio.LimitOverrunError as exc:
            raise WebSocketError("Handshake response too large") from exc

        if len(head) > MAX_HANDSHAKE_SIZE:
            raise WebSocketError("Handshake response too large")

        status_code, headers = parse_handshake_response(head)
        if status_code != 101:
            raise WebSocketError(
                f"WebSocket handshake failed with status {status_code}"
            )

        # Validate Sec-WebSocket-Accept (RFC 6455)
        expected_accept = compute_accept_key(key)
        actual_accept = headers.get("sec-websocket-accept")
        if actual_accept != expected_accept:
            raise WebSocketError(
                f"Invalid Sec-WebSocket-Accept header. "
                f"Expected: {expected_accept}, Got: {actual_accept}"
            )

    async def _read_loop(self) -> None:
        """Dispatch frames until the server sends CLOSE."""
        message = bytearray()
        message_opcode = OPCODE_TEXT

        while True:
            if self.connection is None or self.connection.reader is None:
                raise WebSocketError("WebSocket is not connected")

            fin, opcode, payload = await read_frame(
                self.connection.reader, self.max_frame_size
            )

            if opcode == OPCODE_CLOSE:
                logger.debug("Server closed %s", self.url)
                return

            elif opcode == OPCODE_PING:
                self._write(create_frame(payload, opcode=OPCODE_PONG, mask=True))
                self.on_heartbeat()

            elif opcode == OPCODE_PONG:
                self.on_heartbeat()

            elif opcode in (OPCODE_TEXT, OPCODE_BINARY, OPCODE_CONTINUATION):
                if opcode != OPCODE_CONTINUATION:
                    message = bytearray()
                    message_opcode = opcode
                message.extend(payload)

                if fin:
                    self.on_message(self._decode(message_opcode, bytes(message)))
                    message = bytearray()

            else:
                raise WebSocketError(f"Unknown opcode: {opcode}")

    @staticmethod
    def _decode(opcode: int, payload: bytes) -> Union[str, bytes]:
        if opcode == OPCODE_TEXT:
            try:
                return payload.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise WebSocketError("Invalid UTF-8 in text frame") from exc
        return payload
