"""Test logging configuration."""

import io
import logging

from qdb_sync import logs


def test_configure_logger(clean_logger):
    """Messages from submodules are formatted and written to the stream."""
    stream = io.StringIO()
    logger = logs.configure_logger("INFO", stream=stream)
    assert logger is logs.LOGGER
    logging.getLogger("qdb_sync.registry").info("hello")
    logging.getLogger("qdb_sync.registry").debug("hidden")
    output = stream.getvalue()
    assert "| INFO | qdb_sync.registry | hello" in output
    assert "hidden" not in output


def test_configure_logger_twice(clean_logger):
    """Only one handler is added, but the level is updated."""
    logs.configure_logger(logging.INFO)
    count = len(logs.LOGGER.handlers)
    logs.configure_logger(logging.DEBUG)
    assert len(logs.LOGGER.handlers) == count
    assert logs.LOGGER.level == logging.DEBUG
