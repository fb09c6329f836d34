from __future__ import annotations

import logging
import os
from typing import Literal

import coloredlogs  # type: ignore[import]

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"

WIRE_LOGGER_NAME = "wizlan.wire"


def setup_logging(level: LogLevel | None = None) -> None:
    resolved = (level or os.environ.get("LOGLEVEL", "INFO")).upper()

    coloredlogs.install(
        level=resolved,
        fmt=DEFAULT_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
    )

    # datagram traces are only useful when debugging the transport itself
    if resolved != "DEBUG":
        logging.getLogger(WIRE_LOGGER_NAME).setLevel(logging.INFO)


class WireLog:
    """Trace of every datagram sent or received by the transport."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(WIRE_LOGGER_NAME)

    def log_input(self, text: str, local: str | None, remote: str | None) -> None:
        self._logger.debug("LOCAL: %s <= REMOTE: %s - Received: %s", local, remote, text)

    def log_output(self, text: str, local: str | None, remote: str | None) -> None:
        self._logger.debug("LOCAL: %s => REMOTE: %s - Sent: %s", local, remote, text)
