"""
Tests for package logging setup.
"""

import logging

from ledger_recon.utils.logging_config import PACKAGE_LOGGER, setup_logging


class TestSetupLogging:
    def teardown_method(self):
        logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def test_console_only(self):
        logger = setup_logging(logging.WARNING)
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.WARNING

    def test_reconfiguring_replaces_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_file_handler_captures_debug(self, tmp_path):
        log_file = tmp_path / "logs" / "recon.log"
        logger = setup_logging(logging.INFO, log_file=log_file)

        logging.getLogger(f"{PACKAGE_LOGGER}.matching").debug("matched 3 lines")
        for handler in logger.handlers:
            handler.flush()

        assert "matched 3 lines" in log_file.read_text()
