"""Unit tests for logging setup."""

import logging

from forcegraph.logging_config import setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def teardown_method(self):
        logger = logging.getLogger("forcegraph")
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)

    def test_console_handler(self):
        logger = setup_logging(logging.DEBUG)
        assert logger.name == "forcegraph"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_reconfigure_does_not_stack_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path):
        path = tmp_path / "session.log"
        logger = setup_logging(logging.INFO, log_file=str(path))
        logging.getLogger("forcegraph.net.connection").info("Connected to %s", "ws://x")
        for handler in logger.handlers:
            handler.flush()
        assert len(logger.handlers) == 2
        assert "Connected to ws://x" in path.read_text(encoding="utf-8")
