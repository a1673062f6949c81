"""Command line entry point: load the configuration and run the servers."""

from __future__ import annotations

import logging
import os
import sys
from typing import Sequence

from webserv.config_loader import DEFAULT_CONF_PATH, parse_config
from webserv.errors import BadArgumentsError, ConfigFileError, WebservError
from webserv.server import serve
from webserv.textutils import welcome

LOG_FILE = "webserver.log"

logger = logging.getLogger(__name__)


def _open_log() -> tuple[logging.Logger, logging.Handler, int]:
    if os.path.exists(LOG_FILE):
        os.remove(LOG_FILE)
    package_logger = logging.getLogger("webserv")
    handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    old_level = package_logger.level
    package_logger.setLevel(logging.DEBUG)
    package_logger.addHandler(handler)
    return package_logger, handler, old_level


def main(argv: Sequence[str] | None = None) -> int:
    """Run the server with an optional configuration file path; return the exit code."""
    args = list(sys.argv[1:] if argv is None else argv)
    package_logger, handler, old_level = _open_log()
    try:
        logger.info("--[ Program started ]--")
        if len(args) > 1:
            raise BadArgumentsError("Usage: webserv [config_file]")
        configs = parse_config(args[0] if args else DEFAULT_CONF_PATH)
        welcome()
        serve(configs)
        return 0
    except BadArgumentsError as exc:
        print(exc, file=sys.stderr)
        return 1
    except ConfigFileError as exc:
        print(exc, file=sys.stderr)
        return 2
    except (WebservError, OSError) as exc:
        print(exc, file=sys.stderr)
        return 3
    finally:
        package_logger.removeHandler(handler)
        package_logger.setLevel(old_level)
        handler.close()


if __name__ == "__main__":
    sys.exit(main())