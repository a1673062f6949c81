import contextlib
import signal
import socket
import threading

import pytest

from webserv.config_loader import ServerConfig
from webserv.errors import PollError
from webserv.network import CHUNK_SIZE
from webserv.server import (
    EVENT_READ,
    EVENT_WRITE,
    Poller,
    WebServer,
    default_handler,
    serve,
)


def _exchange(port, payload):
    with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
        client.sendall(payload)
        chunks = []
        while True:
            data = client.recv(65536)
            if not data:
                break
            chunks.append(data)
    return b"".join(chunks)


@contextlib.contextmanager
def _running(handler=default_handler):
    server = WebServer([ServerConfig(port=0, host="127.0.0.1")], handler)
    server.start()
    results = []
    thread = threading.Thread(target=lambda: results.append(server.run()), daemon=True)
    thread.start()
    try:
        yield server.addresses[0][1], results
    finally:
        server.request_shutdown(signal.SIGINT, None)
        thread.join(5)
        server.stop()


def _parse(response):
    head, _, body = response.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = dict(line.split(": ", 1) for line in lines[1:])
    return lines[0], headers, body


def test_poller_reports_readable_socket():
    left, right = socket.socketpair()
    with left, right, Poller() as poller:
        poller.add(left, EVENT_READ)
        assert poller.wait(0) == []
        right.send(b"x")
        assert poller.wait(1) == [(left, EVENT_READ)]


def test_poller_update_and_remove():
    left, right = socket.socketpair()
    with left, right, Poller() as poller:
        poller.add(left, EVENT_READ)
        poller.update(left, EVENT_WRITE)
        assert poller.wait(1) == [(left, EVENT_WRITE)]
        poller.remove(left)
        assert poller.wait(0) == []


def test_poller_errors():
    left, right = socket.socketpair()
    with left, right, Poller() as poller:
        poller.add(left, EVENT_READ)
        with pytest.raises(PollError):
            poller.add(left, EVENT_READ)
        with pytest.raises(PollError):
            poller.update(right, EVENT_READ)
        with pytest.raises(PollError):
            poller.remove(right)


def test_default_handler_ok():
    config = ServerConfig(port=8080, host="127.0.0.1")
    status, headers, body = _parse(default_handler(b"GET / HTTP/1.1\r\nHost: a\r\n\r\n", config))
    assert status == "HTTP/1.1 200 OK"
    assert int(headers["Content-Length"]) == len(body)


@pytest.mark.parametrize(
    "request_bytes, expected",
    [
        (b"garbage\r\n\r\n", "HTTP/1.1 400 Bad Request"),
        (b"PUT / HTTP/1.1\r\n\r\n", "HTTP/1.1 405 Method Not Allowed"),
    ],
)
def test_default_handler_errors(request_bytes, expected):
    status, headers, body = _parse(default_handler(request_bytes, ServerConfig()))
    assert status == expected
    assert int(headers["Content-Length"]) == len(body)


def test_round_trip_with_default_handler():
    with _running() as (port, results):
        response = _exchange(port, b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
    assert response.startswith(b"HTTP/1.1 200 OK\r\n")
    assert results == [True]


def test_request_body_is_accumulated():
    def echo(request, config):
        return request

    payload = b"POST /up HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
    with _running(echo) as (port, results):
        response = _exchange(port, payload)
    assert response == payload
    assert results == [True]


def test_large_response_is_sent_whole():
    big = b"y" * (CHUNK_SIZE * 5 + 17)

    def large(request, config):
        return big

    with _running(large) as (port, _results):
        response = _exchange(port, b"GET / HTTP/1.1\r\n\r\n")
    assert response == big


def test_handler_receives_listener_config():
    seen = []

    def record(request, config):
        seen.append(config.host)
        return b"done"

    with _running(record) as (port, _results):
        assert _exchange(port, b"GET / HTTP/1.1\r\n\r\n") == b"done"
    assert seen == ["127.0.0.1"]


def test_request_shutdown_ends_run(capsys):
    server = WebServer([])
    try:
        server.request_shutdown(signal.SIGINT, None)
        assert server.run() is True
    finally:
        server.stop()
    out = capsys.readouterr().out
    assert "SIGINT received" in out
    assert "Servers stopped" in out


def test_serve_reports_bind_failure(capsys):
    previous = signal.getsignal(signal.SIGINT)
    with socket.socket() as occupied:
        occupied.bind(("", 0))
        occupied.listen()
        port = occupied.getsockname()[1]
        assert serve([ServerConfig(port=port, host="127.0.0.1")]) is False
    assert "bind" in capsys.readouterr().err
    assert signal.getsignal(signal.SIGINT) is previous