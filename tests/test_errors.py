import pytest

from webserv.errors import (
    BadArgumentsError,
    ConfigFileError,
    FileNotOpenError,
    PollError,
    ResolveHostError,
    SocketError,
    WebservError,
)


def test_bad_arguments_error_keeps_message():
    error = BadArgumentsError("Usage: ./webserv [config_file]")
    assert str(error) == "Usage: ./webserv [config_file]"
    assert isinstance(error, WebservError)
    assert isinstance(error, Exception)


def test_file_not_open_error_keeps_message():
    error = FileNotOpenError("Error: missing.conf could not be opened")
    assert str(error) == "Error: missing.conf could not be opened"
    assert isinstance(error, WebservError)


def test_config_file_error_keeps_message():
    error = ConfigFileError("Error: config file is not properly structured.")
    assert str(error) == "Error: config file is not properly structured."
    assert isinstance(error, WebservError)


def test_resolve_host_error_keeps_message():
    error = ResolveHostError("Error: getaddrinfo: Name or service not known")
    assert str(error) == "Error: getaddrinfo: Name or service not known"
    assert isinstance(error, WebservError)


def test_socket_error_keeps_message():
    error = SocketError("Error: bind: Address already in use")
    assert str(error) == "Error: bind: Address already in use"
    assert isinstance(error, WebservError)


def test_poll_error_keeps_message():
    error = PollError("Error: epoll_ctl: Bad file descriptor")
    assert str(error) == "Error: epoll_ctl: Bad file descriptor"
    assert isinstance(error, WebservError)


@pytest.mark.parametrize(
    ("raised", "other"),
    [
        (ConfigFileError, BadArgumentsError),
        (BadArgumentsError, ConfigFileError),
        (SocketError, PollError),
        (PollError, SocketError),
        (ResolveHostError, FileNotOpenError),
    ],
)
def test_errors_are_distinct_families(raised, other):
    with pytest.raises(raised) as info:
        try:
            raise raised("Error: distinct")
        except other:
            pass
    assert str(info.value) == "Error: distinct"
    assert type(info.value) is raised


def test_specific_handler_catches_only_its_error():
    error = SocketError("Error: bind: in use")
    caught = None
    try:
        raise error
    except ConfigFileError:
        caught = "config handler"
    except SocketError as exc:
        caught = exc
    assert caught is error
    assert str(caught) == "Error: bind: in use"
    assert not isinstance(error, ConfigFileError)


@pytest.mark.parametrize(
    ("error_type", "message"),
    [
        (BadArgumentsError, "a"),
        (FileNotOpenError, "b"),
        (ConfigFileError, "c"),
        (ResolveHostError, "d"),
        (SocketError, "e"),
        (PollError, "f"),
    ],
)
def test_base_class_catches_every_error(error_type, message):
    with pytest.raises(WebservError) as info:
        raise error_type(message)
    assert str(info.value) == message
    assert type(info.value) is error_type