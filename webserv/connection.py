"""Per-connection request accumulation and chunked response sending."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

from webserv.network import CHUNK_SIZE
from webserv.textutils import pretty_print, to_int

logger = logging.getLogger(__name__)

_HEADER_END = b"\r\n\r\n"


class ConnectionState(enum.Enum):
    """Where a client connection is in its request/response cycle."""

    READING_REQUEST = enum.auto()
    PROCESSING_REQUEST = enum.auto()
    SENDING_RESPONSE = enum.auto()
    CLOSING = enum.auto()


def parse_headers(header_block: str) -> dict[str, str]:
    """Parse the header fields that follow the request line.

    Raises ValueError for a field line without a colon or with an empty name.
    """
    lines = header_block.split("\r\n")
    headers: dict[str, str] = {}
    for line in lines[1:]:
        if not line:
            continue
        name, colon, value = line.partition(":")
        name = name.strip()
        if not colon or not name:
            raise ValueError(f"malformed header line: {line!r}")
        headers[name] = value.strip()
    return headers


def headers_received(request: bytes) -> int | None:
    """Return the request's Content-Length once its headers are complete.

    Gives 0 when the headers carry no Content-Length, and None while the
    headers are incomplete or cannot be parsed.
    """
    end = request.find(_HEADER_END)
    if end == -1:
        return None
    block = request[: end + len(_HEADER_END)].decode("latin-1")
    try:
        headers = parse_headers(block)
    except ValueError as exc:
        logger.error(pretty_print("headers_received", 0, str(exc)))
        return None
    if "Content-Length" in headers:
        return to_int(headers["Content-Length"])
    return 0


def continue_receiving(request: bytes, content_length: int, total_bytes_read: int) -> bool:
    """True while more of the request body is still expected."""
    end = request.find(_HEADER_END)
    if end == -1:
        return True
    body_start = end + len(_HEADER_END)
    remaining = content_length - (total_bytes_read - body_start)
    return remaining > 0


@dataclass
class Connection:
    """State of one client connection served by a listening server."""

    config: Any = None
    state: ConnectionState = ConnectionState.READING_REQUEST
    request_buffer: bytes = b""
    response_buffer: bytes = b""
    bytes_sent: int = 0

    def reset(self) -> None:
        """Prepare for the next request."""
        self.state = ConnectionState.READING_REQUEST
        self.request_buffer = b""
        self.response_buffer = b""
        self.bytes_sent = 0

    def feed(self, data: bytes) -> ConnectionState:
        """Add received bytes; empty data means the client closed."""
        if not data:
            logger.info("Connection closed by client")
            self.state = ConnectionState.CLOSING
            return self.state
        self.request_buffer += data
        content_length = headers_received(self.request_buffer)
        if content_length is not None and not continue_receiving(
            self.request_buffer, content_length, len(self.request_buffer)
        ):
            self.state = ConnectionState.PROCESSING_REQUEST
        else:
            self.state = ConnectionState.READING_REQUEST
        return self.state

    def next_chunk(self) -> bytes:
        """The next part of the response to send, at most CHUNK_SIZE bytes."""
        return self.response_buffer[self.bytes_sent : self.bytes_sent + CHUNK_SIZE]

    def mark_sent(self, count: int) -> ConnectionState:
        """Record ``count`` bytes as sent; nothing sent closes the connection."""
        if count == 0:
            logger.error("Failed to send response")
            self.state = ConnectionState.CLOSING
            return self.state
        self.bytes_sent += count
        if self.bytes_sent >= len(self.response_buffer):
            self.state = ConnectionState.CLOSING
        else:
            self.state = ConnectionState.SENDING_RESPONSE
        return self.state