"""
Tests for the logging configuration module.

Tests the centralized logging configuration, log retention and the audit
logger.
"""

import logging
import os
from pathlib import Path
from unittest.mock import patch

from shared_contacts.utils.logging import (
    AUDIT_LOGGER_NAME,
    CONSOLE_FORMAT,
    DATE_FORMAT,
    DEFAULT_FORMAT,
    PROJECT_LOG_DIR,
    VERBOSE_FORMAT,
    ColoredFormatter,
    cleanup_old_logs,
    get_audit_log_path,
    get_audit_logger,
    get_log_file_path,
    get_log_level_from_env,
    get_logger,
    setup_audit_logger,
    setup_logging,
)


class TestConstants:
    """Tests for module constants."""

    def test_default_format_defined(self):
        assert "%(message)s" in DEFAULT_FORMAT

    def test_console_format_defined(self):
        assert "%(message)s" in CONSOLE_FORMAT

    def test_verbose_format_defined(self):
        """Test VERBOSE_FORMAT carries source locations."""
        assert "%(filename)s" in VERBOSE_FORMAT
        assert "%(lineno)d" in VERBOSE_FORMAT

    def test_date_format_defined(self):
        assert DATE_FORMAT is not None


class TestGetLogLevelFromEnv:
    """Tests for get_log_level_from_env function."""

    @patch.dict(os.environ, {"SHARED_CONTACTS_DEBUG": "1"}, clear=False)
    def test_debug_mode_from_env_1(self):
        assert get_log_level_from_env() == logging.DEBUG

    @patch.dict(os.environ, {"SHARED_CONTACTS_DEBUG": "yes"}, clear=False)
    def test_debug_mode_from_env_yes(self):
        assert get_log_level_from_env() == logging.DEBUG

    @patch.dict(
        os.environ,
        {"SHARED_CONTACTS_LOG_LEVEL": "ERROR", "SHARED_CONTACTS_DEBUG": ""},
        clear=False,
    )
    def test_log_level_error(self):
        """Test ERROR log level from environment."""
        assert get_log_level_from_env() == logging.ERROR

    @patch.dict(
        os.environ,
        {"SHARED_CONTACTS_LOG_LEVEL": "loud", "SHARED_CONTACTS_DEBUG": ""},
        clear=False,
    )
    def test_invalid_level_defaults_to_info(self):
        assert get_log_level_from_env() == logging.INFO

    @patch.dict(
        os.environ,
        {"SHARED_CONTACTS_LOG_LEVEL": "warn", "SHARED_CONTACTS_DEBUG": ""},
        clear=False,
    )
    def test_warn_alias_for_warning(self):
        """Test WARN is an alias for WARNING."""
        assert get_log_level_from_env() == logging.WARNING


class TestGetLogFilePath:
    """Tests for get_log_file_path function."""

    @patch.dict(os.environ, {"SHARED_CONTACTS_LOG_FILE": "/custom/path/app.log"})
    def test_custom_log_file_from_env(self):
        assert get_log_file_path() == Path("/custom/path/app.log")

    @patch.dict(os.environ, {"SHARED_CONTACTS_LOG_FILE": "none"})
    def test_log_file_disabled_with_none(self):
        assert get_log_file_path() is None

    @patch.dict(os.environ, {"SHARED_CONTACTS_LOG_FILE": "disabled"})
    def test_log_file_disabled_with_disabled(self):
        assert get_log_file_path() is None

    def test_default_path_in_project_logs(self):
        with patch.dict(os.environ, {}, clear=True):
            path = get_log_file_path()
        assert path.parent == PROJECT_LOG_DIR
        assert path.name.startswith("shared_contacts_")
        assert path.suffix == ".log"


class TestColoredFormatter:
    """Tests for ColoredFormatter class."""

    def test_formatter_with_colors_disabled(self):
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        assert formatter.use_colors is False

    @patch("sys.stdout")
    def test_formatter_supports_color_non_tty(self, mock_stdout):
        """Test formatter detects non-TTY and disables colors."""
        mock_stdout.isatty.return_value = False
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    @patch.dict(os.environ, {"NO_COLOR": "1"})
    @patch("sys.stdout")
    def test_formatter_respects_no_color_env(self, mock_stdout):
        mock_stdout.isatty.return_value = True
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    @patch("sys.stdout")
    def test_colored_record_does_not_leak(self, mock_stdout):
        """Coloring one handler's output leaves the record itself plain."""
        mock_stdout.isatty.return_value = True
        with patch.dict(os.environ, {"TERM": "xterm", "NO_COLOR": ""}):
            formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        record = logging.LogRecord("test", logging.INFO, "t.py", 1, "hello", (), None)

        result = formatter.format(record)

        assert "\033[" in result
        assert record.levelname == "INFO"
        assert record.msg == "hello"

    def test_format_record_without_colors(self):
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="test.py",
            lineno=1,
            msg="Test message",
            args=(),
            exc_info=None,
        )
        result = formatter.format(record)
        assert "Test message" in result
        assert "\033[" not in result


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_returns_logger(self):
        logger = setup_logging(enable_file_logging=False)
        assert isinstance(logger, logging.Logger)
        assert logger.name == "shared_contacts"

    def test_setup_logging_with_verbose(self):
        logger = setup_logging(verbose=True, enable_file_logging=False)
        assert logger.level == logging.DEBUG

    def test_setup_logging_with_explicit_level(self):
        logger = setup_logging(level=logging.WARNING, enable_file_logging=False)
        assert logger.level == logging.WARNING

    def test_setup_logging_clears_handlers(self):
        """Test setup_logging clears existing handlers."""
        setup_logging(enable_file_logging=False)
        logger = setup_logging(enable_file_logging=False)
        assert len(logger.handlers) == 1

    def test_setup_logging_with_file(self, tmp_path):
        """Test setup_logging with file logging."""
        log_file = tmp_path / "test.log"
        logger = setup_logging(
            log_file=log_file, enable_file_logging=True, use_colors=False
        )
        assert len(logger.handlers) == 2
        logger.info("Test message")
        assert "Test message" in log_file.read_text()

    def test_setup_logging_with_log_dir(self, tmp_path):
        logger = setup_logging(log_dir=tmp_path, use_colors=False)

        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert Path(file_handlers[0].baseFilename).parent == tmp_path

    def test_setup_logging_propagate_disabled(self):
        logger = setup_logging(enable_file_logging=False)
        assert logger.propagate is False


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_with_module_name(self):
        assert get_logger("shared_contacts.test").name == "shared_contacts.test"

    def test_get_logger_without_prefix(self):
        """Test get_logger prepends prefix if needed."""
        assert get_logger("mymodule").name == "shared_contacts.mymodule"

    def test_get_logger_returns_child_logger(self):
        logger = get_logger("test_child")
        assert logger.parent is not None
        assert logger.parent.name == "shared_contacts"


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs function."""

    def _make_logs(self, log_dir, prefix, count):
        paths = []
        for index in range(count):
            path = log_dir / f"{prefix}_2026010{index}.log"
            path.write_text("x")
            os.utime(path, (1_000_000 + index, 1_000_000 + index))
            paths.append(path)
        return paths

    def test_keeps_most_recent_of_each_kind(self, tmp_path):
        app_logs = self._make_logs(tmp_path, "shared_contacts", 4)
        audit_logs = self._make_logs(tmp_path, "audit", 3)

        deleted = cleanup_old_logs(tmp_path, keep_count=2)

        assert deleted == 3
        assert [p.exists() for p in app_logs] == [False, False, True, True]
        assert [p.exists() for p in audit_logs] == [False, True, True]

    def test_other_files_are_untouched(self, tmp_path):
        other = tmp_path / "notes.log"
        other.write_text("x")

        cleanup_old_logs(tmp_path, keep_count=1)

        assert other.exists()

    def test_zero_disables_cleanup(self, tmp_path):
        self._make_logs(tmp_path, "shared_contacts", 3)
        assert cleanup_old_logs(tmp_path, keep_count=0) == 0

    def test_missing_dir(self, tmp_path):
        assert cleanup_old_logs(tmp_path / "missing") == 0


class TestAuditLogger:
    """Tests for the audit logger functions."""

    def test_get_audit_log_path(self, tmp_path):
        path = get_audit_log_path(tmp_path)
        assert path.parent == tmp_path
        assert path.name.startswith("audit_")
        assert path.suffix == ".log"

    def test_audit_path_follows_configured_log_dir(self, tmp_path):
        setup_logging(log_dir=tmp_path, use_colors=False)
        assert get_audit_log_path().parent == tmp_path

    def test_get_audit_logger(self):
        logger = get_audit_logger()
        assert logger.name == AUDIT_LOGGER_NAME

    def test_setup_audit_logger_writes_records(self, tmp_path):
        log_file = tmp_path / "audit.log"
        logger = setup_audit_logger(log_file=log_file)

        logger.info("CREATE Shared-1-personal principal=bob@example.com")

        assert len(logger.handlers) == 1
        assert logger.propagate is False
        assert "CREATE Shared-1-personal" in log_file.read_text()

    def test_setup_audit_logger_clears_handlers(self, tmp_path):
        log_file = tmp_path / "audit.log"
        setup_audit_logger(log_file=log_file)
        logger = setup_audit_logger(log_file=log_file)
        assert len(logger.handlers) == 1

    def test_unwritable_path_falls_back_to_stderr(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")

        logger = setup_audit_logger(log_file=blocker / "audit.log")

        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0], logging.FileHandler)
