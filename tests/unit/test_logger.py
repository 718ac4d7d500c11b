"""
Unit tests for engine logging setup.
"""

import logging

import pytest

from fhenft.utils import logger as engine_logging
from fhenft.utils.logger import get_logger, setup_logging


@pytest.fixture
def restore_root():
    root = logging.getLogger(engine_logging.ROOT)
    level = root.level
    yield root
    if engine_logging._file is not None:
        root.removeHandler(engine_logging._file)
        engine_logging._file.close()
        engine_logging._file = None
    setup_logging(level=level)


def test_subsystem_loggers_are_children():
    assert get_logger("escrow").name == "fhenft.escrow"
    assert get_logger("escrow").parent is logging.getLogger("fhenft")


def test_console_installed_once(restore_root):
    get_logger("tracker")
    setup_logging(level=logging.DEBUG)
    setup_logging(level=logging.WARNING)

    assert len(restore_root.handlers) == 1
    assert restore_root.level == logging.WARNING
    assert restore_root.handlers[0].level == logging.WARNING


def test_log_file(restore_root, tmp_path):
    path = tmp_path / "logs" / "fhenft.log"
    setup_logging(level=logging.INFO, log_file=path)
    get_logger("settlement").info("request 3 issued")

    for handler in restore_root.handlers:
        handler.flush()
    assert "[fhenft.settlement] INFO" in path.read_text()
    assert len(restore_root.handlers) == 2
