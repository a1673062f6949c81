"""Loading server blocks from cleaned configuration lines into server settings."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from itertools import takewhile
from typing import Sequence

from webserv.config_syntax import count_servers, read_config_file, validate_structure
from webserv.errors import ConfigFileError, FileNotOpenError
from webserv.textutils import split, to_int

logger = logging.getLogger(__name__)

DEFAULT_CONF_PATH = "./configuration/default.conf"

_MAX_PORT = 65535
_MAX_BODY_NUMBER = 1024
_SIZE_MULTIPLIERS = {"K": 1024, "M": 1048576}
_DEFAULT_BODY_SIZE = 1048576
_REQUIRED_LOCATION_KEYS = ("root", "autoindex")

Location = list[tuple[str, str]]


@dataclass
class ServerConfig:
    """Settings of one server block, with the virtual servers sharing its port."""

    port: int = 0
    host: str = ""
    server_names: list[str] = field(default_factory=list)
    error_pages: dict[int, str] = field(default_factory=dict)
    client_max_body_size: int = 0
    locations: dict[str, Location] = field(default_factory=dict)
    redirects: dict[str, tuple[int, str]] = field(default_factory=dict)
    virtual_servers: list[ServerConfig] = field(default_factory=list)

    def is_empty(self) -> bool:
        """True when no setting has been loaded."""
        return self == ServerConfig()

    def clear(self) -> None:
        """Reset every setting to its default."""
        self.port = 0
        self.host = ""
        self.server_names = []
        self.error_pages = {}
        self.client_max_body_size = 0
        self.locations = {}
        self.redirects = {}
        self.virtual_servers = []


def directive_value(line: str, error_message: str) -> str:
    """Return what follows the directive name, without trailing semicolons.

    Gives an empty string, after logging ``error_message``, when the line
    holds no value at all.
    """
    pos = line.find(" ")
    if pos == -1:
        logger.error(error_message)
        return ""
    return line[pos + 1 :].rstrip(";")


def load_port(line: str, config: ServerConfig) -> None:
    """Load a ``listen`` directive."""
    message = "'port' directive without port number"
    value = directive_value(line, message)
    if not value:
        raise ConfigFileError(f"Error: {message}")
    if (
        not (value.isascii() and value.isdigit())
        or str(int(value)) != value
        or not 0 < int(value) <= _MAX_PORT
    ):
        logger.error("Invalid port number: %s", value)
        raise ConfigFileError(f"Error: Invalid port number: {value}")
    config.port = int(value)
    logger.info("Successfully parsed port: %d", config.port)


def load_server_name(line: str, config: ServerConfig) -> None:
    """Load a ``server_name`` directive; the first name becomes the host."""
    message = "'server_name' directive without server name"
    value = directive_value(line, message)
    names = split(value, " ") if value else []
    if not names:
        raise ConfigFileError(f"Error: {message}")
    config.host = names[0]
    config.server_names = names
    logger.info("Successfully parsed host: %s", names[0])
    logger.info("Successfully parsed server names: %s", " ".join(names))


def load_error_page(line: str, config: ServerConfig) -> None:
    """Load an ``error_page <code> <path>`` directive."""
    message = "'error_page' directive without error code and/or path"
    value = directive_value(line, message)
    if not value:
        raise ConfigFileError(f"Error: {message}")
    parts = split(value, " ")
    if len(parts) != 2:
        logger.error("'error_page' directive with invalid number of arguments")
        raise ConfigFileError(
            "Error: 'error_page' directive with invalid number of arguments"
        )
    code = to_int(parts[0])
    if code <= 0:
        logger.error("Invalid error code: %s", parts[0])
        raise ConfigFileError(f"Error: Invalid error code: {parts[0]}")
    config.error_pages[code] = parts[1]
    logger.info("Successfully parsed error page: %d -> %s", code, parts[1])


def load_client_max_body_size(line: str, config: ServerConfig) -> None:
    """Load ``client_max_body_size``.

    The number must lie in 1..1024; a K or M suffix scales it, and a value
    without either suffix means one mebibyte.
    """
    message = "'client_max_body_size' directive without size"
    value = directive_value(line, message)
    if not value:
        raise ConfigFileError(f"Error: {message}")
    suffix = value[-1].upper()
    size = to_int(value)
    if size <= 0 or size > _MAX_BODY_NUMBER:
        logger.error("Invalid size: %s", value)
        raise ConfigFileError(f"Error: Invalid size: {value}")
    multiplier = _SIZE_MULTIPLIERS.get(suffix)
    config.client_max_body_size = size * multiplier if multiplier else _DEFAULT_BODY_SIZE
    logger.info(
        "Successfully parsed client max body size: %d", config.client_max_body_size
    )


def load_location(
    config_lines: Sequence[str], line: str, line_num: int, config: ServerConfig
) -> None:
    """Load the ``location <endpoint> {`` block starting at ``line_num``."""
    tokens = split(line, " ")
    if len(tokens) != 3:
        logger.error("'location' directive with invalid number of arguments")
        raise ConfigFileError(
            "Error: 'location' directive with invalid number of arguments"
        )
    endpoint = tokens[1]

    settings = list(takewhile(lambda entry: "}" not in entry, config_lines[line_num + 1 :]))
    if not settings:
        logger.error("'location' directive without settings")
        raise ConfigFileError("Error: 'location' directive without settings")

    if len(settings) == 1 and "return" in settings[0]:
        load_redirect(endpoint, settings[0], config)
        return

    entries: Location = []
    for setting in settings:
        content = split(setting, " ")
        if content:
            content[-1] = content[-1][:-1]
        if len(content) != 2:
            logger.error("'location' directive with invalid number of arguments")
            raise ConfigFileError(
                f"Error: 'location' directive with invalid number of arguments: {setting}"
            )
        entries.append((content[0], content[1]))
    config.locations[endpoint] = entries
    logger.info("Successfully parsed location: %s", endpoint)


def load_redirect(endpoint: str, line: str, config: ServerConfig) -> None:
    """Load a ``return <code> <target>;`` line for ``endpoint``."""
    parts = split(line, " ")
    if len(parts) != 3:
        logger.error("'return' directive with invalid number of arguments")
        raise ConfigFileError(
            "Error: 'return' directive with invalid number of arguments"
        )
    target = parts[2][:-1]
    code = to_int(parts[1])
    config.redirects[endpoint] = (code, target)
    logger.info("Successfully parsed redirect: %s -> %d %s", endpoint, code, target)


def _listen_value(line: str) -> str:
    return line[line.find(" ") + 1 :]


def _next_listen_matches(config_lines: Sequence[str], port: str, start: int) -> bool:
    for line in config_lines[start:]:
        if "listen" in line:
            return _listen_value(line) == port
    return False


def split_servers(config_lines: Sequence[str], n_servers: int) -> list[list[str]]:
    """Cut the lines into ``n_servers`` groups.

    Consecutive server blocks that listen on the same port go in one group.
    """
    groups: list[list[str]] = []
    position = 0
    last = len(config_lines) - 1
    for _ in range(n_servers):
        group: list[str] = []
        depth = 0
        port = ""
        for index in range(position, len(config_lines)):
            line = config_lines[index]
            if not port and "listen" in line:
                port = _listen_value(line)
            if "{" in line:
                depth += 1
            if "}" in line:
                depth -= 1
            group.append(line)
            position += 1
            if _next_listen_matches(config_lines, port, index):
                continue
            if depth == 0 or index == last:
                break
        groups.append(group)
    return groups


def _apply_directive(
    line: str, current: ServerConfig, index: int, block: Sequence[str]
) -> None:
    loaders = (
        ("listen", "port", lambda: load_port(line, current)),
        ("server_name", "server name", lambda: load_server_name(line, current)),
        ("error_page", "error page", lambda: load_error_page(line, current)),
        (
            "client_max_body_size",
            "client max body size",
            lambda: load_client_max_body_size(line, current),
        ),
        ("location", "locations", lambda: load_location(block, line, index, current)),
    )
    for keyword, what, load in loaders:
        if keyword in line:
            try:
                load()
            except ConfigFileError as exc:
                raise ConfigFileError(f"Error: could not load {what}.") from exc


def load_server(block: Sequence[str]) -> ServerConfig:
    """Load one group of server blocks; the later blocks become virtual servers."""
    current = ServerConfig()
    primary = ServerConfig()
    virtual_servers: list[ServerConfig] = []
    depth = 0

    for index, line in enumerate(block):
        if "{" in line:
            depth += 1
        elif "}" in line:
            depth -= 1

        if depth:
            _apply_directive(line, current, index, block)
            continue

        if primary.is_empty():
            primary = copy.deepcopy(current)
        else:
            virtual_servers.append(copy.deepcopy(current))
        current.clear()

    if virtual_servers:
        primary.virtual_servers = virtual_servers
    return primary


def load_config(config_lines: Sequence[str], n_servers: int) -> list[ServerConfig]:
    """Load ``n_servers`` server configurations from cleaned lines."""
    return [load_server(group) for group in split_servers(config_lines, n_servers)]


def _location_value(location: Location, key: str) -> str:
    return next((value for name, value in location if name == key), "")


def validate_config(config: ServerConfig) -> bool:
    """Check a loaded configuration and its virtual servers.

    Missing optional settings are only logged; a missing port or an
    incomplete location makes the configuration invalid.
    """
    logger.info("Validating config data...")
    if config.port == 0:
        logger.error("Error: port is not valid.")
        return False
    if not config.host:
        logger.error("Error: host is not valid.")
    if not config.server_names:
        logger.error("Error: server_name is not valid.")
    if not config.error_pages:
        logger.error("Error: error_page is not valid.")
    if config.client_max_body_size == 0:
        logger.error("Error: client_max_body_size is not valid.")

    if not config.locations:
        logger.error("Error: locations is not valid.")
    for endpoint, location in config.locations.items():
        if not endpoint or not location:
            logger.error("Error: location is not valid.")
            return False
        if any(name for name, _ in location):
            for key in _REQUIRED_LOCATION_KEYS:
                if not _location_value(location, key):
                    logger.error("Error: %s is not valid.", key)
                    return False

    if not config.redirects:
        logger.error("Error: redirect is not valid.")
    if not config.virtual_servers:
        logger.error("Error: virtual_server is not valid.")

    return all(validate_config(virtual) for virtual in config.virtual_servers)


def parse_config(path: str = DEFAULT_CONF_PATH) -> list[ServerConfig]:
    """Read, check and load the configuration file at ``path``."""
    try:
        config_lines = read_config_file(path)
    except FileNotOpenError as exc:
        raise ConfigFileError("Error: could not open config file to load.") from exc

    if not validate_structure(config_lines):
        raise ConfigFileError("Error: config file is not properly structured.")
    n_servers = count_servers(config_lines)
    if n_servers == 0:
        raise ConfigFileError("Error: no servers found in config file.")

    configs = load_config(config_lines, n_servers)
    if not validate_config(configs[0]):
        raise ConfigFileError("Error: config data is bad.")
    logger.info("Config file loaded successfully")
    return configs