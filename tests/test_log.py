import logging

from log import configure_logging


def test_configure_twice_adds_one_handler():
    root = logging.getLogger()
    before = len(root.handlers)

    configure_logging("INFO")
    configure_logging("DEBUG")

    assert len(root.handlers) <= before + 1
    assert root.level == logging.DEBUG
