"""Reading configuration lines, checking their structure and counting servers."""

from __future__ import annotations

from typing import Iterable, Sequence

from webserv.errors import ConfigFileError, FileNotOpenError
from webserv.textutils import rtrim, split, trim

_TERMINATORS = ("{", "}", ";")


def _strip_comment(line: str) -> str:
    return rtrim(line.split("#", 1)[0])


def read_config(lines: Iterable[str]) -> list[str]:
    """Return the meaningful lines: trimmed, without blanks or comments."""
    config = []
    for raw in lines:
        line = trim(raw)
        if not line or line.startswith("#"):
            continue
        config.append(_strip_comment(line))
    return config


def read_config_file(path: str) -> list[str]:
    """Read and clean the configuration file at ``path``."""
    try:
        with open(path, encoding="utf-8") as handle:
            return read_config(handle)
    except OSError as exc:
        raise FileNotOpenError(f"Error: {path} could not be opened") from exc


def validate_structure(config: Sequence[str]) -> bool:
    """Check that every line ends a statement or block and braces balance."""
    marker_count = sum(line.count(ch) for line in config for ch in _TERMINATORS)
    if marker_count == 0:
        return False

    depth = 0
    for line in config:
        if not line or line[-1] not in _TERMINATORS:
            return False
        if "{" in line:
            depth += 1
        if "}" in line:
            depth -= 1
        if depth < 0:
            return False

    return depth == 0 and len(config) == marker_count


def _scan_server(config: Sequence[str], start: int, ports: list[str]) -> int:
    """Record the listen ports from ``start``; return where scanning stopped."""
    depth = 1
    index = start
    while index < len(config):
        tokens = split(config[index], " ")
        if len(tokens) == 2 and tokens[1] == "{":
            depth += 1
        if len(tokens) == 2 and tokens[0] == "listen":
            port = tokens[1]
            if port not in ports:
                ports.append(port)
            elif ports[-1] != port:
                raise ConfigFileError(f"Error: port {port} is already in use.")
        if depth == 1 and tokens == ["}"]:
            break
        index += 1
    return index


def count_servers(config: Sequence[str]) -> int:
    """Count distinct listening ports.

    Consecutive server blocks sharing a port count once; a port that
    reappears after another one is an error.
    """
    ports: list[str] = []
    index = 0
    while index < len(config):
        if split(config[index], " ") == ["server", "{"]:
            index = _scan_server(config, index + 1, ports)
        index += 1
    return len(ports)