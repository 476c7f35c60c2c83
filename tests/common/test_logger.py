"""Tests for logging utilities."""

import logging

from rich.logging import RichHandler

from common.logger import error, get_logger, setup_logging, success, warning


class TestGetLogger:
    """Tests for get_logger function."""

    def test_returns_logger_instance(self):
        """Test that get_logger returns a logger instance."""
        logger = get_logger("test")
        assert isinstance(logger, logging.Logger)

    def test_logger_name(self):
        """Test that logger has correct name."""
        logger = get_logger("test.module")
        assert logger.name == "test.module"

    def test_default_level_is_info(self, monkeypatch):
        """Test that default logging level is INFO."""
        monkeypatch.delenv("MARGINALIA_LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        logger = get_logger("test.default")
        assert logger.level == logging.INFO

    def test_level_from_env(self, monkeypatch):
        """Test that MARGINALIA_LOG_LEVEL sets the level."""
        monkeypatch.setenv("MARGINALIA_LOG_LEVEL", "warning")
        logger = get_logger("test.env_level")
        assert logger.level == logging.WARNING

    def test_custom_level(self):
        """Test that custom logging level can be set."""
        logger = get_logger("test.custom", level="DEBUG")
        assert logger.level == logging.DEBUG

    def test_logger_has_rich_handler(self):
        """Test that logger is configured with a rich handler."""
        logger = get_logger("test.handler")
        assert any(isinstance(h, RichHandler) for h in logger.handlers)

    def test_reuses_existing_logger(self):
        """Test that get_logger reuses existing logger instance."""
        logger1 = get_logger("test.reuse")
        logger2 = get_logger("test.reuse")
        assert logger1 is logger2
        # Should not add duplicate handlers
        assert len(logger1.handlers) == 1

    def test_logging_output(self, caplog):
        """Test that logging actually produces output."""
        logger = get_logger("test.output")

        with caplog.at_level(logging.INFO):
            logger.info("Test message")

        assert "Test message" in caplog.text

    def test_info_level_filters_debug(self, caplog):
        """Test that INFO level filters out DEBUG messages."""
        logger = get_logger("test.filter", level="INFO")

        with caplog.at_level(logging.DEBUG):
            logger.debug("This should not appear")
            logger.info("This should appear")

        assert "This should not appear" not in caplog.text
        assert "This should appear" in caplog.text


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_sets_level_of_package_loggers(self, monkeypatch):
        """Test that package loggers follow the configured level."""
        monkeypatch.delenv("MARGINALIA_LOG_LEVEL", raising=False)
        logger = get_logger("store.test_setup", level="INFO")
        root_level = logging.getLogger().level

        try:
            setup_logging("DEBUG")
            assert logger.level == logging.DEBUG
        finally:
            logging.getLogger().setLevel(root_level)
            logger.setLevel(logging.INFO)

    def test_writes_log_file(self, tmp_path, monkeypatch):
        """Test that a log file receives records."""
        monkeypatch.delenv("MARGINALIA_LOG_LEVEL", raising=False)
        log_file = tmp_path / "marginalia.log"
        root = logging.getLogger()
        root_level = root.level

        try:
            setup_logging("INFO", log_file=str(log_file))
            get_logger("store.test_file").warning("written to file")
        finally:
            for handler in [h for h in root.handlers if isinstance(h, logging.FileHandler)]:
                handler.close()
                root.removeHandler(handler)
            root.setLevel(root_level)

        assert "written to file" in log_file.read_text()


class TestConsoleHelpers:
    """Tests for the CLI console helpers."""

    def test_success_and_warning_print(self, capsys):
        """Test that helpers print their message."""
        success("Store ready")
        warning("No legacy library")

        out = capsys.readouterr().out
        assert "Store ready" in out
        assert "No legacy library" in out

    def test_error_prints_to_stderr(self, capsys):
        """Test that errors go to the stderr console only."""
        error("Store is locked")

        captured = capsys.readouterr()
        assert "Store is locked" in captured.err
        assert "Store is locked" not in captured.out
