"""Tests for logging setup."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from guidancekit.core.console import get_logger, setup_logging


class TestLogging:
    def test_setup_installs_single_rich_handler(self) -> None:
        logger = setup_logging("warning")
        setup_logging("warning")
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
        assert not logger.propagate

    def test_verbose_forces_debug(self) -> None:
        assert setup_logging("error", verbose=True).level == logging.DEBUG

    def test_module_loggers_are_children(self) -> None:
        package_logger = logging.getLogger("guidancekit")
        assert get_logger("guidancekit.ledger").parent is package_logger
        assert get_logger() is package_logger
