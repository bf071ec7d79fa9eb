"""
Logging Configuration

The console shows conversion progress the way the command line prints
everything else: bare messages, with the level prefixed when it is not
INFO. A log file, if requested, gets timestamps and logger names.
"""

import logging
import sys
from typing import Optional, TextIO


LOGGER_NAME = "vox2brs"

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_DATE_FORMAT = "%H:%M:%S"


class ConsoleFormatter(logging.Formatter):
    """Plain messages for INFO, 'LEVEL: message' for everything else."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno == logging.INFO:
            return message
        return f"{record.levelname.capitalize()}: {message}"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure the package logger for the command line and web interfaces.

    Calling it again replaces (and closes) the handlers of the previous call.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path that also receives every record
        stream: Console stream (default stdout)

    Returns:
        The configured 'vox2brs' logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter("%(message)s"))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
    return logger
