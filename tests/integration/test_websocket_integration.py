"""tests/integration/test_websocket_integration.py

Integration tests driving StreamConnection against a local WebSocket server.

The server speaks just enough RFC 6455 for the client: the upgrade
handshake, unmasked server frames and an echo of every text frame.
"""

import asyncio
import socket
from typing import Awaitable, Callable, List, Optional

import pytest
import pytest_asyncio

from streamkeeper import StreamConnection, StreamState
from streamkeeper.exceptions import HeartbeatTimeout, NetworkError, TransportClosed, WebSocketError
from streamkeeper.utils.websocket_utils import (
    OPCODE_CLOSE,
    OPCODE_TEXT,
    compute_accept_key,
    create_frame,
    read_frame,
)

Behaviour = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]


async def accept_upgrade(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Answer the client's upgrade request."""
    head = (await reader.readuntil(b"\r\n\r\n")).decode("latin-1")
    key = ""
    for line in head.split("\r\n")[1:]:
        name, _, value = line.partition(":")
        if name.strip().lower() == "sec-websocket-key":
            key = value.strip()

    writer.write(
        (
            "HTTP/1.1 101 Switching Protocols\r\n"
            "Upgrade: websocket\r\n"
            "Connection: Upgrade\r\n"
            f"Sec-WebSocket-Accept: {compute_accept_key(key)}\r\n\r\n"
        ).encode("latin-1")
    )
    await writer.drain()


async def echo(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Greet, then echo text frames until the client closes."""
    writer.write(create_frame(b"welcome", OPCODE_TEXT, mask=False))
    await writer.drain()
    while True:
        try:
            _, opcode, payload = await read_frame(reader, 1024 * 1024)
        except WebSocketError:
            return
        if opcode == OPCODE_CLOSE:
            return
        if opcode == OPCODE_TEXT:
            writer.write(create_frame(payload, OPCODE_TEXT, mask=False))
            await writer.drain()


async def hang_up(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Close the session right after the handshake."""
    writer.write(create_frame(b"", OPCODE_CLOSE, mask=False))
    await writer.drain()


async def stay_silent(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Keep the socket open without sending anything."""
    await reader.read()


@pytest_asyncio.fixture
async def serve():
    """Start local WebSocket servers; returns their port."""
    servers: List[asyncio.AbstractServer] = []

    async def _serve(behaviour: Behaviour) -> int:
        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            try:
                await accept_upgrade(reader, writer)
                await behaviour(reader, writer)
            except (ConnectionError, asyncio.IncompleteReadError):
                pass
            finally:
                writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        servers.append(server)
        return server.sockets[0].getsockname()[1]

    yield _serve

    for server in servers:
        server.close()
        await server.wait_closed()


async def wait_for_state(
    stream: StreamConnection, state: StreamState, timeout: float = 5.0
) -> None:
    """Wait until ``stream`` publishes ``state``."""
    reached = asyncio.Event()

    def observer(status) -> None:
        if status.status is state:
            reached.set()

    unsubscribe = stream.subscribe(observer)
    try:
        if stream.status().status is not state:
            await asyncio.wait_for(reached.wait(), timeout)
    finally:
        unsubscribe()


def free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


# ============================================================================
# TEST CLASS: Live sessions
# ============================================================================


class TestLiveSession:
    """StreamConnection on a real event loop and socket."""

    @pytest.mark.asyncio
    async def test_connect_receive_and_send(self, serve):
        """Test connecting, receiving the greeting and an echo."""
        port = await serve(echo)
        stream = StreamConnection(f"127.0.0.1:{port}")
        messages: asyncio.Queue = asyncio.Queue()
        stream.on("message", messages.put_nowait)

        await wait_for_state(stream, StreamState.CONNECTED)
        assert await asyncio.wait_for(messages.get(), 5.0) == "welcome"

        stream.send("echo me")
        assert await asyncio.wait_for(messages.get(), 5.0) == "echo me"

        stream.close()
        assert stream.status().status is StreamState.FAILED
        assert stream.transport is None

    @pytest.mark.asyncio
    async def test_reset_can_send(self, serve):
        """Test reset callbacks may send immediately."""
        port = await serve(echo)
        stream = StreamConnection(f"127.0.0.1:{port}")
        messages: asyncio.Queue = asyncio.Queue()
        stream.on("message", messages.put_nowait)
        stream.on("reset", lambda: stream.send("hello again"))

        received = [
            await asyncio.wait_for(messages.get(), 5.0),
            await asyncio.wait_for(messages.get(), 5.0),
        ]

        assert sorted(received) == ["hello again", "welcome"]
        stream.close()

    @pytest.mark.asyncio
    async def test_server_close_reconnects(self, serve):
        """Test a clean server close is retried automatically."""
        port = await serve(hang_up)
        stream = StreamConnection(f"127.0.0.1:{port}")
        resets = asyncio.Queue()
        disconnects: List[Optional[object]] = []
        stream.on("reset", lambda: resets.put_nowait(True))
        stream.on("disconnect", disconnects.append)

        await asyncio.wait_for(resets.get(), 5.0)
        await asyncio.wait_for(resets.get(), 5.0)

        assert disconnects[0] is None
        stream.close()


# ============================================================================
# TEST CLASS: Failures
# ============================================================================


class TestLiveFailures:
    """Deadlines and refused connections on a real loop."""

    @pytest.mark.asyncio
    async def test_heartbeat_timeout(self, serve):
        """Test a silent server trips the heartbeat deadline."""
        port = await serve(stay_silent)
        stream = StreamConnection(
            f"127.0.0.1:{port}", retry=False, heartbeat_timeout=0.2
        )
        conditions = []
        stream.on("disconnect", conditions.append)

        await wait_for_state(stream, StreamState.CONNECTED)
        await wait_for_state(stream, StreamState.FAILED)

        assert len(conditions) == 1
        assert isinstance(conditions[0], HeartbeatTimeout)
        stream.close()

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        """Test a refused connection surfaces as TransportClosed."""
        stream = StreamConnection(f"127.0.0.1:{free_port()}", retry=False)
        conditions = []
        stream.on("disconnect", conditions.append)

        await wait_for_state(stream, StreamState.FAILED)

        assert isinstance(conditions[0], TransportClosed)
        assert isinstance(conditions[0].__cause__, NetworkError)
        stream.close()
