"""
Logging setup for the netimpair command line.

Library modules only create module-level loggers; handlers are configured
here, once, by the entry point.
"""

import logging
from typing import Optional

from .exceptions import LogFileError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
) -> None:
    """
    Configure root logging.

    Args:
        level: Level name for console and file output.
        log_file: Append-only activity log. None disables it.
        console: Also log to stderr. The interactive menu turns this off so
            log lines do not interleave with prompts.

    Raises:
        LogFileError: If log_file cannot be opened.
    """
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, mode="a"))
        except OSError as e:
            raise LogFileError(log_file, e.strerror or str(e))
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
