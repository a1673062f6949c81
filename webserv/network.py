"""Thin socket helpers that report failures as SocketError or ResolveHostError."""

from __future__ import annotations

import logging
import socket

from webserv.errors import ResolveHostError, SocketError
from webserv.textutils import pretty_print

logger = logging.getLogger(__name__)

BACKLOG = 10
CHUNK_SIZE = 8192

AddrInfo = tuple[
    socket.AddressFamily, socket.SocketKind, int, str, tuple[str, int]
]


def _fail(function: str, what: str, exc: OSError) -> SocketError:
    reason = exc.strerror or str(exc)
    logger.error(pretty_print(function, 0, f"{what}: {reason}"))
    return SocketError(f"Error: {what}: {reason}")


def resolve_host(host: str) -> list[AddrInfo]:
    """Resolve ``host`` to its IPv4 stream addresses."""
    try:
        results = socket.getaddrinfo(host, None, socket.AF_INET, socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as exc:
        reason = getattr(exc, "strerror", None) or str(exc)
        logger.error(pretty_print("resolve_host", 0, f"getaddrinfo: {reason}"))
        raise ResolveHostError(f"Error: getaddrinfo: {reason}") from exc
    if not results:
        raise ResolveHostError("Error: failed to bind")
    return results


def create_listener(host: str, port: int, backlog: int = BACKLOG) -> socket.socket:
    """Open a socket listening on every interface at ``port``.

    ``host`` must resolve; its first address decides the socket family.
    """
    family, kind, proto, _, _ = resolve_host(host)[0]
    try:
        listener = socket.socket(family, kind, proto)
    except OSError as exc:
        raise _fail("create_listener", "socket", exc) from exc
    try:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    except OSError as exc:
        listener.close()
        raise _fail("create_listener", "setsockopt", exc) from exc
    try:
        listener.bind(("", port))
    except OSError as exc:
        listener.close()
        raise _fail("create_listener", "bind", exc) from exc
    try:
        listener.listen(backlog)
    except OSError as exc:
        listener.close()
        raise _fail("create_listener", "listen", exc) from exc
    return listener


def accept_connection(listener: socket.socket) -> tuple[socket.socket, tuple]:
    """Accept the next pending connection on ``listener``."""
    logger.info("Accepting connection")
    try:
        return listener.accept()
    except OSError as exc:
        raise _fail("accept_connection", "accept", exc) from exc


def receive(conn: socket.socket, size: int = CHUNK_SIZE) -> bytes:
    """Read at most ``size`` bytes; an empty result means the peer closed."""
    try:
        return conn.recv(size)
    except OSError as exc:
        logger.error(pretty_print("receive", 0, "recv: failed to read data"))
        raise SocketError("Error: recv: failed to read data") from exc


def send(conn: socket.socket, data: bytes) -> int:
    """Send what the socket accepts of ``data`` and return the count."""
    try:
        return conn.send(data)
    except OSError as exc:
        logger.error(pretty_print("send", 0, "send: failed to send data."))
        raise SocketError("Error: send: failed to send data") from exc


def set_blocking(sock: socket.socket, blocking: bool) -> None:
    """Switch ``sock`` between blocking and non-blocking mode."""
    try:
        sock.setblocking(blocking)
    except OSError as exc:
        raise _fail("set_blocking", "fcntl", exc) from exc


def close_socket(sock: socket.socket, function: str = "", line: int = 0) -> None:
    """Close ``sock``, naming the caller in the log if that fails."""
    try:
        sock.close()
    except OSError as exc:
        reason = exc.strerror or str(exc)
        logger.error(pretty_print(function, line, f"close: {reason}"))
        raise SocketError(f"Error: close: {reason}") from exc