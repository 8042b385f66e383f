"""src/streamkeeper/utils/websocket_utils.py

WebSocket (RFC 6455) framing and handshake helpers.
"""

import asyncio
import base64
import hashlib
import os
import struct
from typing import Dict, Mapping, Optional, Sequence, Tuple

from streamkeeper.exceptions import WebSocketError

__all__ = [
    "OPCODE_CONTINUATION",
    "OPCODE_TEXT",
    "OPCODE_BINARY",
    "OPCODE_CLOSE",
    "OPCODE_PING",
    "OPCODE_PONG",
    "apply_mask",
    "create_frame",
    "read_frame",
    "compute_accept_key",
    "build_handshake_request",
    "parse_handshake_response",
]

OPCODE_CONTINUATION = 0x0
OPCODE_TEXT = 0x1
OPCODE_BINARY = 0x2
OPCODE_CLOSE = 0x8
OPCODE_PING = 0x9
OPCODE_PONG = 0xA

_MAGIC_STRING = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"


def apply_mask(data: bytes, mask: bytes) -> bytes:
    """Apply XOR mask to data."""
    if not mask:
        return data
    return bytes(b ^ mask[i % 4] for i, b in enumerate(data))


def create_frame(payload: bytes, opcode: int, mask: bool = True) -> bytes:
    """Create a single unfragmented WebSocket frame."""
    b0 = 0x80 | (opcode & 0x0F)  # FIN=1 + Opcode

    payload_len = len(payload)
    if payload_len <= 125:
        b1 = (0x80 if mask else 0x00) | payload_len
        header = struct.pack("!BB", b0, b1)

    elif payload_len <= 0xFFFF:
        b1 = (0x80 if mask else 0x00) | 126
        header = struct.pack("!BBH", b0, b1, payload_len)

    else:
        b1 = (0x80 if mask else 0x00) | 127
        header = struct.pack("!BBQ", b0, b1, payload_len)

    if mask:
        mask_key = os.urandom(4)
        header += mask_key
        payload = apply_mask(payload, mask_key)

    return header + payload


async def read_frame(
    reader: asyncio.StreamReader, max_frame_size: int
) -> Tuple[bool, int, bytes]:
    """
    Read one frame from ``reader``.

    Returns:
        ``(fin, opcode, payload)`` with the payload already unmasked.

    Raises:
        WebSocketError: On a truncated stream or an oversized frame.
    """
    try:
        b0, b1 = await reader.readexactly(2)

        fin = bool(b0 & 0x80)
        opcode = b0 & 0x0F
        masked = bool(b1 & 0x80)
        payload_len = b1 & 0x7F

        if payload_len == 126:
            payload_len = int.from_bytes(await reader.readexactly(2), "big")

        elif payload_len == 127:
            payload_len = int.from_bytes(await reader.readexactly(8), "big")

        # Validate frame size to prevent DoS
        if payload_len > max_frame_size:
            raise WebSocketError(
                f"Frame payload too large: {payload_len} bytes "
                f"(max: {max_frame_size})"
            )

        mask_key = await reader.readexactly(4) if masked else b""
        payload = await reader.readexactly(payload_len)

    except asyncio.IncompleteReadError as exc:
        raise WebSocketError("Connection closed while reading frame") from exc

    if masked:
        payload = apply_mask(payload, mask_key)

    return fin, opcode, payload


def compute_accept_key(sec_key: str) -> str:
    """
    Compute Sec-WebSocket-Accept value from Sec-WebSocket-Key.
    As per RFC 6455 Section 4.2.2.
    """
    # SHA1 is required by RFC 6455, not used for security purposes
    sha1 = hashlib.sha1(
        (sec_key + _MAGIC_STRING).encode("utf-8"), usedforsecurity=False
    ).digest()
    return base64.b64encode(sha1).decode("ascii")


def build_handshake_request(
    host: str,
    port: int,
    path: str,
    key: str,
    headers: Optional[Mapping[str, str]] = None,
    subprotocols: Optional[Sequence[str]] = None,
) -> bytes:
    """Build the HTTP/1.1 upgrade request opening a WebSocket."""
    lines = [
        f"GET {path} HTTP/1.1",
        f"Host: {host}:{port}",
        "Upgrade: websocket",
        "Connection: Upgrade",
        f"Sec-WebSocket-Key: {key}",
        "Sec-WebSocket-Version: 13",
    ]

    if subprotocols:
        lines.append(f"Sec-WebSocket-Protocol: {', '.join(subprotocols)}")

    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")

    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")


def parse_handshake_response(data: bytes) -> Tuple[int, Dict[str, str]]:
    """
    Parse the status code and headers of a handshake response.

    Header names are lower-cased.

    Raises:
        WebSocketError: If the status line is malformed.
    """
    head = data.split(b"\r\n\r\n", 1)[0].decode("latin-1")
    status_line, _, header_block = head.partition("\r\n")

    parts = status_line.split(" ", 2)
    if len(parts) < 2 or not parts[0].startswith("HTTP/") or not parts[1].isdigit():
        raise WebSocketError(f"Invalid handshake status line: {status_line!r}")

    headers: Dict[str, str] = {}
    for line in header_block.split("\r\n"):
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()

    return int(parts[1]), headers
