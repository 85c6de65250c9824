"""
Logging configuration for the radiometric calibration package.

Library modules only ever call ``get_logger(__name__)``.  Applications (the
command-line tool, notebooks) call ``setup_logging()`` once to attach handlers
to the package logger.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER = "RadiometricResponseTool"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger for *name*, nested under the package logger."""
    if not name.startswith(PACKAGE_LOGGER):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def setup_logging(level: Union[int, str] = logging.INFO,
                  log_file: Optional[Union[str, Path]] = None,
                  console: bool = True) -> logging.Logger:
    """
    Attach console and/or file handlers to the package logger.

    Calling this more than once replaces the handlers installed by the
    previous call instead of stacking duplicates.

    Parameters
    ----------
    level : int or str
        Logging level for the package logger (e.g. ``logging.DEBUG`` or
        ``"INFO"``).
    log_file : str or Path, optional
        If given, records are also written to this file with timestamps.
    console : bool
        Whether to log to ``stdout``.  Default is ``True``.

    Returns
    -------
    logging.Logger
        The configured package logger.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
