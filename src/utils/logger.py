"""
Logger Module

Standardized logging functionality for the authentication tools.
Tokens, passwords and one-time codes are never passed to a logger
"""

import os
import sys
import logging
from pathlib import Path
from datetime import datetime
from typing import Dict, Optional

_LOGGERS: Dict[str, logging.Logger] = {}

# Level given to loggers created without an explicit one
_default_level = logging.INFO

LOG_TO_FILE_ENV = "LOG_TO_FILE"


def _file_logging_enabled() -> bool:
    return os.environ.get(LOG_TO_FILE_ENV, "true").strip().lower() not in ("0", "false", "no", "off")


def setup_logger(name: str, level: Optional[int] = None,
                log_to_file: Optional[bool] = None) -> logging.Logger:
    """
    Set up and configure logger

    :param name: Name for the logger
    :param level: Logging level (e.g., logging.INFO, logging.DEBUG),
        defaults to the level set by set_global_log_level
    :param log_to_file: Whether to log to file in addition to console,
        defaults to the LOG_TO_FILE environment switch
    :return: Configured logging.Logger instance
    """
    if name in _LOGGERS:
        return _LOGGERS[name]

    if level is None:
        level = _default_level

    if log_to_file is None:
        log_to_file = _file_logging_enabled()

    # Create logger
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    if logger.hasHandlers():
        logger.handlers.clear()

    # Status lines for the operator go to stdout, diagnostics to stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    if log_to_file:
        log_dir = Path(__file__).parents[2] / "logs"
        os.makedirs(log_dir, exist_ok=True)

        date_str = datetime.now().strftime('%Y%m%d')
        log_file = log_dir / f"{date_str}_{name}.log"

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)

        logger.addHandler(file_handler)

    _LOGGERS[name] = logger

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get an existing logger or create new one

    :param name: Name of the logger
    :return: Logger instance
    """
    if name in _LOGGERS:
        return _LOGGERS[name]
    else:
        return setup_logger(name)


def set_global_log_level(level: int) -> None:
    """
    Set the log level for all existing loggers and for loggers
    created afterwards

    :param level: Logging level (e.g., logging.INFO, logging.DEBUG)
    """
    global _default_level
    _default_level = level

    for logger_name, logger in _LOGGERS.items():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
