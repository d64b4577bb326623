"""
Logging setup for commit-composer.

Log records go to stderr so they never interleave with the draft
listings and prompts printed on stdout.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)

# Loggers that report every HTTP request at INFO.
HTTP_LOGGERS = ("httpx", "httpcore")


def level_for_verbosity(verbosity: int) -> int:
    """
    0 -> WARNING, 1 -> INFO, 2 or more -> DEBUG.
    """

    return _LEVELS[min(max(verbosity, 0), len(_LEVELS) - 1)]


def configure_logging(verbosity: int) -> None:
    level = level_for_verbosity(verbosity)
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)

    http_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)
