import logging

import pytest
from rich.logging import RichHandler

from shared.logging_setup import setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_root_goes_through_one_rich_handler(root_logger):
    handler = setup_logging("debug", quiet=("slotboard-test.noisy",))

    assert isinstance(handler, RichHandler)
    assert root_logger.handlers == [handler]
    assert root_logger.level == logging.DEBUG
    assert logging.getLogger("slotboard-test.noisy").level == logging.WARNING


def test_markup_is_opt_in(root_logger):
    assert setup_logging("INFO").markup is False
    assert setup_logging("INFO", markup=True).markup is True


def test_unknown_level_falls_back_to_info(root_logger):
    setup_logging("chatty")

    assert root_logger.level == logging.INFO
