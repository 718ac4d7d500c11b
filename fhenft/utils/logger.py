"""
Logging for the auction engine.

Every subsystem logs through a child of the ``fhenft`` logger (``fhenft.escrow``,
``fhenft.settlement``, ...). The first ``get_logger`` call installs a colored
console handler; ``setup_logging`` later adjusts the level and can add a plain
log file. Log lines carry handles and identities only, never bid amounts.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog

ROOT = "fhenft"

_CONSOLE_FORMAT = "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s"
_FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

_console: Optional[logging.Handler] = None
_file: Optional[logging.FileHandler] = None


def _install_console(root: logging.Logger, level: int) -> None:
    global _console

    _console = colorlog.StreamHandler(sys.stdout)
    _console.setFormatter(colorlog.ColoredFormatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT, log_colors=_LEVEL_COLORS))
    root.handlers.clear()
    root.addHandler(_console)
    root.setLevel(level)


def setup_logging(level: int = logging.INFO, log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Configure the engine loggers.

    Args:
        level: Level for the root engine logger and all its handlers
        log_file: Also append to this file (its directory is created)

    Returns:
        The root ``fhenft`` logger
    """
    global _file

    root = logging.getLogger(ROOT)
    if _console is None:
        _install_console(root, level)

    if log_file is not None and _file is None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _file = logging.FileHandler(path)
        _file.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
        root.addHandler(_file)

    root.setLevel(level)
    for handler in root.handlers:
        handler.setLevel(level)
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for one subsystem, e.g. get_logger("escrow") -> fhenft.escrow."""
    if _console is None:
        _install_console(logging.getLogger(ROOT), logging.INFO)
    return logging.getLogger(f"{ROOT}.{name}")
