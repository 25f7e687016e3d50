"""
Tests for component logger setup.
"""
import logging

from shared import logging_config


class TestSetupLogging:
    def test_configures_once(self):
        first = logging_config.setup_logging("TESTONCE")
        handlers = list(first.handlers)

        second = logging_config.setup_logging("TESTONCE")

        assert first is second
        assert second.handlers == handlers
        assert first.name == "shifttrack.testonce"

    def test_writes_log_file(self, data_dir):
        logger = logging_config.setup_logging("TESTFILE")
        logger.info("hello file")
        for handler in logger.handlers:
            handler.flush()

        files = list((data_dir / "logs").glob("shifttrack_testfile_*.log"))
        assert len(files) == 1
        assert "[TESTFILE] [INFO] hello file" in files[0].read_text(encoding="utf-8")

    def test_env_level_override(self, monkeypatch):
        monkeypatch.setenv(logging_config.LOG_LEVEL_ENV, "warning")
        logger = logging_config.setup_logging("TESTENV", level="DEBUG", log_to_file=False)
        assert logger.level == logging.WARNING

    def test_set_log_level_applies_to_all(self, monkeypatch):
        monkeypatch.delenv(logging_config.LOG_LEVEL_ENV, raising=False)
        logger = logging_config.setup_logging("TESTLEVEL", log_to_file=False)

        logging_config.enable_debug_logging()
        assert logger.level == logging.DEBUG

        logging_config.disable_debug_logging()
        assert logger.level == logging.INFO


class TestFormatter:
    def test_plain_format(self):
        formatter = logging_config.ShiftTrackFormatter("SYNC")
        record = logging.LogRecord("shifttrack.sync", logging.WARNING, __file__, 1,
                                   "offline", None, None)
        assert formatter.format(record).endswith("[SYNC] [WARNING] offline")

    def test_colored_format_keeps_text(self):
        formatter = logging_config.ShiftTrackFormatter("SYNC", colors=True)
        record = logging.LogRecord("shifttrack.sync", logging.ERROR, __file__, 1,
                                   "boom", None, None)
        assert "[SYNC] [ERROR] boom" in formatter.format(record)
