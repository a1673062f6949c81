"""Exception hierarchy for the web server."""


class WebservError(Exception):
    """Base class for every error the server raises on purpose."""


class BadArgumentsError(WebservError):
    """The command line was not used correctly."""


class FileNotOpenError(WebservError):
    """A file could not be opened."""


class ConfigFileError(WebservError):
    """The configuration file is malformed or holds invalid values."""


class ResolveHostError(WebservError):
    """A host name could not be resolved to an address."""


class SocketError(WebservError):
    """A socket operation failed."""


class PollError(WebservError):
    """Registering or waiting on the event poller failed."""