"""Small text helpers shared by the configuration parser and the server."""

from __future__ import annotations

import re
import sys
from typing import Iterable, TextIO

_INT_MIN = -(2**31)
_INT_MAX = 2**31 - 1
_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


def trim(text: str) -> str:
    """Remove leading and trailing spaces, tabs, carriage returns and newlines."""
    return text.strip(" \t\r\n")


def rtrim(text: str) -> str:
    """Remove trailing spaces and tabs; text made only of them is left as is."""
    stripped = text.rstrip(" \t")
    return stripped if stripped else text


def split(text: str, delimiter: str) -> list[str]:
    """Split on ``delimiter``, dropping an empty final token."""
    if not delimiter:
        raise ValueError("delimiter must not be empty")
    tokens = text.split(delimiter)
    if tokens and tokens[-1] == "":
        tokens.pop()
    return tokens


def join(items: Iterable[str], delimiter: str) -> str:
    """Join strings with ``delimiter`` between them."""
    return delimiter.join(items)


def to_int(text: str) -> int:
    """Read a leading integer from ``text`` as a 32-bit value.

    Leading whitespace is skipped, anything after the digits is ignored,
    text without a number gives 0 and out-of-range values are clamped.
    """
    match = _LEADING_INT.match(text)
    if match is None:
        return 0
    value = int(match.group(1))
    return max(_INT_MIN, min(_INT_MAX, value))


def pretty_print(function: str, line: int, message: str) -> str:
    """Format a message with the function and line it comes from."""
    return f"In function {function} at line {line}: {message}"


def welcome(path: str = "./welcome.txt", stream: TextIO | None = None) -> bool:
    """Copy the welcome banner at ``path`` to ``stream``.

    Returns False, after reporting on stderr, when the file cannot be read.
    """
    out = sys.stdout if stream is None else stream
    try:
        with open(path, encoding="utf-8") as banner:
            for line in banner:
                out.write(line.rstrip("\n") + "\n")
    except OSError:
        print(f"Error: {path} could not be opened", file=sys.stderr)
        return False
    return True