"""
Logging configuration for the pipeline entrypoints.

Modules only call ``logging.getLogger(__name__)``; the entrypoint calls
``create_logger`` once to attach a colour console handler and, optionally,
a plain-text file handler.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, Union

import colorlog

CONSOLE_FORMAT = (
    "%(log_color)s[%(levelname)s]%(reset)s "
    "%(blue)s[%(name)s]%(reset)s "
    "%(message)s"
)
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def create_logger(
    name: Optional[str] = None,
    log_level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure and return a logger with a colour console handler.

    :param name: Logger name; child loggers (``name.*``) inherit the handlers.
    :param log_level: Logging level, as int or name (``"DEBUG"``, ...).
    :param log_file: Optional path of a plain-text log file.
    :return: Configured logger instance
    """
    if isinstance(log_level, str):
        log_level = log_level.upper()

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Re-running the entrypoint in one interpreter must not duplicate output.
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            CONSOLE_FORMAT,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["create_logger"]
