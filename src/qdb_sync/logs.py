"""Logging for qdb-sync.

Every module logs to a child of `.LOGGER`, using the standard `logging`
module. Libraries shouldn't configure logging themselves, so nothing is
printed unless the application calls `.configure_logger` (the ``qdb-sync``
command does this for you) or sets up `logging` some other way.
"""

import logging
import sys
from typing import TextIO

LOGGER = logging.getLogger("qdb_sync")
"""The parent logger for everything in qdb-sync."""

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class _QdbHandler(logging.StreamHandler):
    """The handler installed by `.configure_logger`, so we can find it again."""


def configure_logger(
    level: int | str = logging.INFO, stream: TextIO | None = None
) -> logging.Logger:
    """Send qdb-sync's log messages to the console.

    This is safe to call more than once: the handler is only added the first
    time, though the level is updated every time.

    :param level: the minimum level to print, as a number or a name.
    :param stream: where to write messages. Defaults to `sys.stderr`.

    :return: the configured logger.
    """
    LOGGER.setLevel(level)
    for handler in LOGGER.handlers:
        if isinstance(handler, _QdbHandler):
            break
    else:
        handler = _QdbHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        LOGGER.addHandler(handler)
    return LOGGER
