"""Tests for logging setup."""

import logging
import logging.handlers

import pytest

from drivecat.logging_config import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_console_only(self):
        setup_logging()
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.handlers[0].level == logging.WARNING

    def test_verbose_console(self):
        setup_logging(verbose=True)
        assert logging.getLogger().handlers[0].level == logging.DEBUG

    def test_rotating_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "drivecat.log"
        setup_logging(log_file=log_file)

        logging.getLogger("drivecat.test").info("scan started")
        for handler in logging.getLogger().handlers:
            handler.flush()

        file_handlers = [
            h
            for h in logging.getLogger().handlers
            if isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert "scan started" in log_file.read_text()
