r"""Pydantic models describing how to connect to the database service.

A `.ClientConfig` holds everything needed to build an `.Application`:
where the service lives, how often to tick, and how chatty to be. It may
be loaded from a JSON file or string by the `.cli` module, or constructed
directly in Python. Nothing in qdb-sync reads configuration from the
environment: it is always passed in explicitly.
"""

import logging
from pydantic import BaseModel, Field, field_validator

# The service's own clients log at TRACE, which we map onto DEBUG.
LOG_LEVEL_ALIASES = {"TRACE": "DEBUG", "WARN": "WARNING"}


class ClientConfig(BaseModel):
    """The configuration parameters for a qdb-sync client."""

    url: str = Field(
        default="http://localhost:8080",
        description="The base URL of the database service.",
    )

    loop_interval_ms: int = Field(
        default=500,
        gt=0,
        description="The target time between scheduler ticks, in milliseconds.",
    )

    auth_attempts: int = Field(
        default=3,
        ge=1,
        description=(
            "How many times to send a request before giving up, if the service "
            "keeps rejecting our client ID."
        ),
    )

    timeout: float = Field(
        default=10.0,
        gt=0,
        description="The timeout for each HTTP request, in seconds.",
    )

    log_level: str = Field(
        default="DEBUG",
        description="The name of the logging level, e.g. INFO or DEBUG.",
    )

    @field_validator("url", mode="after")
    @classmethod
    def check_url(cls, url: str) -> str:
        """Make sure the URL is HTTP(S), and remove any trailing slash.

        :param url: the validated URL string.
        :return: the URL without a trailing slash.
        :raises ValueError: if the URL is not an HTTP URL.
        """
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"{url} is not an http:// or https:// URL.")
        return url.rstrip("/")

    @field_validator("log_level", mode="after")
    @classmethod
    def check_log_level(cls, level: str) -> str:
        """Normalise the log level to a standard `logging` level name.

        :param level: the level name, in any case.
        :return: the upper-case name of a `logging` level.
        :raises ValueError: if the level is not recognised.
        """
        level = level.upper()
        level = LOG_LEVEL_ALIASES.get(level, level)
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"{level} is not a valid log level.")
        return level

    @property
    def loop_interval(self) -> float:
        """The target time between scheduler ticks, in seconds."""
        return self.loop_interval_ms / 1000
