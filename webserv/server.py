"""Event-driven HTTP server: poller, listening servers and shutdown on signals."""

from __future__ import annotations

import logging
import selectors
import signal
import socket
import sys
import threading
from http import HTTPStatus
from typing import Callable, Iterable, Sequence

from webserv.config_loader import ServerConfig
from webserv.connection import Connection, ConnectionState
from webserv.errors import PollError, WebservError
from webserv.network import (
    CHUNK_SIZE,
    accept_connection,
    close_socket,
    create_listener,
    receive,
    send,
    set_blocking,
)

logger = logging.getLogger(__name__)

EVENT_READ = selectors.EVENT_READ
EVENT_WRITE = selectors.EVENT_WRITE
MAX_EVENTS = 64
TIMEOUT = 300.0

ORANGE = "\033[38;5;208m"
RESET = "\033[0m"

_ALLOWED_METHODS = ("GET", "POST", "DELETE")

Handler = Callable[[bytes, ServerConfig], bytes]


class Poller:
    """Readiness notification for a set of sockets."""

    def __init__(self) -> None:
        try:
            self._selector = selectors.DefaultSelector()
        except OSError as exc:
            logger.error("epoll_create: %s", exc)
            raise PollError(f"Error: epoll_create: {exc}") from exc

    def __enter__(self) -> Poller:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def add(self, sock: socket.socket, events: int) -> None:
        """Start watching ``sock`` for ``events``."""
        logger.debug("Adding epoll")
        try:
            self._selector.register(sock, events)
        except (KeyError, ValueError, OSError) as exc:
            logger.error("epoll_ctl: %s", exc)
            raise PollError(f"Error: epoll_ctl: {exc}") from exc

    def update(self, sock: socket.socket, events: int) -> None:
        """Change the events watched on ``sock``."""
        logger.debug("Modifying epoll")
        try:
            self._selector.modify(sock, events)
        except (KeyError, ValueError, OSError) as exc:
            logger.error("epoll_ctl: %s", exc)
            raise PollError(f"Error: epoll_ctl: {exc}") from exc

    def remove(self, sock: socket.socket) -> None:
        """Stop watching ``sock``."""
        logger.debug("Removing epoll")
        try:
            self._selector.unregister(sock)
        except (KeyError, ValueError, OSError) as exc:
            logger.error("epoll_ctl: %s", exc)
            raise PollError(f"Error: epoll_ctl: {exc}") from exc

    def wait(self, timeout: float | None = TIMEOUT) -> list[tuple[socket.socket, int]]:
        """Return up to MAX_EVENTS ready sockets with their event masks."""
        try:
            ready = self._selector.select(timeout)
        except InterruptedError:
            return []
        except OSError as exc:
            logger.error("epoll_wait: %s", exc)
            raise PollError(f"Error: epoll_wait: {exc}") from exc
        return [(key.fileobj, mask) for key, mask in ready[:MAX_EVENTS]]

    def close(self) -> None:
        """Release the poller."""
        logger.debug("Closing epoll")
        self._selector.close()


def default_handler(request: bytes, config: ServerConfig) -> bytes:
    """Answer a request with a short plain-text status response."""
    request_line = request.split(b"\r\n", 1)[0].decode("latin-1")
    parts = request_line.split(" ")
    if len(parts) != 3 or not parts[2].startswith("HTTP/"):
        status = HTTPStatus.BAD_REQUEST
    elif parts[0] not in _ALLOWED_METHODS:
        status = HTTPStatus.METHOD_NOT_ALLOWED
    else:
        status = HTTPStatus.OK
    body = f"{status.value} {status.phrase}\n".encode("ascii")
    head = (
        f"HTTP/1.1 {status.value} {status.phrase}\r\n"
        "Content-Type: text/plain\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("ascii") + body


class WebServer:
    """Listening servers for a set of configurations, driven by one poller."""

    def __init__(
        self, configs: Sequence[ServerConfig], handler: Handler = default_handler
    ) -> None:
        self.configs = list(configs)
        self.handler = handler
        self._listeners: dict[socket.socket, ServerConfig] = {}
        self._connections: dict[socket.socket, Connection] = {}
        self._running = True
        self._poller = Poller()
        self._wakeup_reader, self._wakeup_writer = socket.socketpair()
        self._wakeup_reader.setblocking(False)
        self._wakeup_writer.setblocking(False)
        self._poller.add(self._wakeup_reader, EVENT_READ)

    def __enter__(self) -> WebServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def addresses(self) -> list[tuple]:
        """Local addresses of the listening sockets, in start order."""
        return [listener.getsockname() for listener in self._listeners]

    def start(self) -> None:
        """Open a listening socket for every configuration."""
        for config in self.configs:
            logger.info("Starting server")
            print("Starting server")
            listener = create_listener(config.host, config.port)
            self._listeners[listener] = config
            logger.info("Server started")
            print("Server started")

    def run(self) -> bool:
        """Serve connections until a shutdown is requested."""
        logger.info("Running servers")
        for listener, config in self._listeners.items():
            logger.info("Server listening on port %d", config.port)
            self._poller.add(listener, EVENT_READ)

        while self._running:
            logger.info("Waiting for events")
            for sock, events in self._poller.wait(TIMEOUT):
                if sock is self._wakeup_reader:
                    self._drain_wakeup()
                elif sock in self._listeners:
                    self.handle_new_connection(sock)
                else:
                    self.handle_existing_connection(sock, events)

        logger.info("Servers stopped")
        print("Servers stopped")
        return True

    def stop(self) -> bool:
        """Close every listening and client socket and the poller."""
        logger.info("Stopping server")
        for sock in list(self._connections):
            close_socket(sock, "stop", 0)
        self._connections.clear()
        for listener in list(self._listeners):
            close_socket(listener, "stop", 0)
        self._listeners.clear()
        if self._wakeup_reader.fileno() != -1:
            self._poller.close()
            self._wakeup_reader.close()
            self._wakeup_writer.close()
        return True

    def request_shutdown(self, signum: int, frame: object) -> None:
        """Signal handler: end the serving loop."""
        self._running = False
        sys.stdout.write("\n\033[A\033[K")
        if signum == signal.SIGINT:
            print(f"{ORANGE}SIGINT received{RESET}")
        elif signum == getattr(signal, "SIGQUIT", None):
            print(f"{ORANGE}SIGQUIT received{RESET}")
        sys.stdout.flush()
        try:
            self._wakeup_writer.send(b"\0")
        except OSError:
            pass

    def handle_new_connection(self, listener: socket.socket) -> None:
        """Accept a client on ``listener`` and start watching it."""
        config = self._listeners.get(listener)
        if config is None:
            logger.error("Unknown listening socket event")
            return
        logger.info("New connection on port %d", config.port)
        conn, _ = accept_connection(listener)
        set_blocking(conn, False)
        self._poller.add(conn, EVENT_READ)
        self._connections[conn] = Connection(config=config)

    def handle_existing_connection(self, sock: socket.socket, events: int) -> None:
        """Advance the client connection ``sock`` according to ``events``."""
        conn = self._connections.get(sock)
        if conn is None:
            logger.error("Unknown connection event")
            return
        logger.info("Connection event on port %d", conn.config.port)

        if conn.state is ConnectionState.READING_REQUEST and events & EVENT_READ:
            conn.feed(receive(sock, CHUNK_SIZE))

        if conn.state is ConnectionState.PROCESSING_REQUEST:
            conn.response_buffer = self.handler(conn.request_buffer, conn.config)
            conn.bytes_sent = 0
            conn.state = ConnectionState.SENDING_RESPONSE
            self._poller.update(sock, EVENT_WRITE)
            return

        if conn.state is ConnectionState.SENDING_RESPONSE and events & EVENT_WRITE:
            conn.mark_sent(send(sock, conn.next_chunk()))

        if conn.state is ConnectionState.CLOSING:
            self._close_connection(sock)

    def _close_connection(self, sock: socket.socket) -> None:
        try:
            self._poller.remove(sock)
        except PollError:
            pass
        close_socket(sock, "close_connection", 0)
        self._connections.pop(sock, None)

    def _drain_wakeup(self) -> None:
        try:
            while self._wakeup_reader.recv(CHUNK_SIZE):
                pass
        except BlockingIOError:
            pass


def _install_signals(server: WebServer) -> dict[int, object]:
    if threading.current_thread() is not threading.main_thread():
        return {}
    signums: Iterable[int] = [signal.SIGINT]
    if hasattr(signal, "SIGQUIT"):
        signums = [signal.SIGINT, signal.SIGQUIT]
    return {signum: signal.signal(signum, server.request_shutdown) for signum in signums}


def serve(configs: Sequence[ServerConfig], handler: Handler = default_handler) -> bool:
    """Start, run and stop servers for ``configs``; False when one of them fails."""
    server = WebServer(configs, handler)
    previous = _install_signals(server)
    try:
        server.start()
        return server.run() and server.stop()
    except WebservError as exc:
        print(exc, file=sys.stderr)
        server.stop()
        return False
    finally:
        for signum, old in previous.items():
            signal.signal(signum, old)