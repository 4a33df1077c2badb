# tests/test_logging_utils.py
import logging
import re
from pathlib import Path

import pytest

import dbxl.logging_utils
from dbxl.logging_utils import ErrorCountHandler, errors_logged, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    dbxl.logging_utils._error_handler = None
    dbxl.logging_utils._log_path = None


def make_record(level):
    return logging.LogRecord(name='test', level=level, pathname='', lineno=0,
                             msg='test message', args=(), exc_info=None)


class TestErrorCountHandler:
    """Test ErrorCountHandler class functionality."""

    def test_counts_errors_and_critical(self):
        """Test that handler counts ERROR and CRITICAL messages."""
        handler = ErrorCountHandler()
        handler.emit(make_record(logging.ERROR))
        handler.emit(make_record(logging.CRITICAL))
        handler.emit(make_record(logging.ERROR))
        assert handler.error_count == 3

    def test_ignores_lower_levels(self):
        """Test that handler ignores DEBUG, INFO, WARNING."""
        handler = ErrorCountHandler()
        for level in (logging.DEBUG, logging.INFO, logging.WARNING):
            handler.emit(make_record(level))
        assert handler.error_count == 0


class TestSetupLogging:
    """Test setup_logging() function."""

    def test_creates_timestamped_log_file(self, tmp_path):
        """Test log file name includes script name and timestamp."""
        log_path = setup_logging('nightly_export', log_dir=str(tmp_path), console=False)
        assert Path(log_path).parent == tmp_path
        assert re.fullmatch(r'nightly_export_\d{8}_\d{6}\.log', Path(log_path).name)
        assert Path(log_path).exists()

    def test_creates_missing_directory(self, tmp_path):
        """Test the log directory is created."""
        log_dir = tmp_path / 'logs' / 'exports'
        setup_logging('nightly_export', log_dir=str(log_dir), console=False)
        assert log_dir.is_dir()

    def test_plain_filename_when_format_empty(self, tmp_path, isolated_settings):
        """Test an empty filename_format gives one log file per script."""
        isolated_settings['logging']['filename_format'] = ''
        log_path = setup_logging('nightly_export', log_dir=str(tmp_path), console=False)
        assert Path(log_path).name == 'nightly_export.log'

    def test_level_respected(self, tmp_path):
        """Test messages below the level are not written."""
        log_path = setup_logging('level_test', log_dir=str(tmp_path), level='warning', console=False)
        logging.getLogger('dbxl.exporter').info("Database wrote /tmp/tmp_0123456789.csv")
        logging.getLogger('dbxl.exporter').warning("Could not remove intermediate file")

        content = Path(log_path).read_text()
        assert 'Database wrote' not in content
        assert 'Could not remove intermediate file' in content
        assert '[WARNING] dbxl.exporter:' in content

    def test_settings_supply_defaults(self, tmp_path, isolated_settings):
        """Test directory and level come from settings."""
        isolated_settings['logging']['directory'] = str(tmp_path)
        isolated_settings['logging']['level'] = 'DEBUG'
        log_path = setup_logging('from_settings', console=False)
        assert Path(log_path).parent == tmp_path
        assert logging.getLogger().level == logging.DEBUG

    def test_repeated_setup_replaces_handlers(self, tmp_path):
        """Test calling setup twice does not stack handlers."""
        setup_logging('first', log_dir=str(tmp_path), console=False)
        setup_logging('second', log_dir=str(tmp_path), console=True)
        assert len(logging.getLogger().handlers) == 3


class TestErrorsLogged:
    """Test errors_logged() function."""

    def test_no_errors_returns_none(self, tmp_path):
        """Test that errors_logged() returns None when no errors."""
        setup_logging('test_script', log_dir=str(tmp_path), console=False)
        logging.info("This is just info")
        logging.warning("This is a warning")
        assert errors_logged() is None

    def test_with_errors_returns_log_path(self, tmp_path):
        """Test errors_logged() returns the log file path."""
        log_path = setup_logging('test_script', log_dir=str(tmp_path), console=False)
        logging.getLogger('dbxl.exporter').error("Export to /tmp/tmp_0123456789.xlsx failed")

        assert errors_logged() == log_path
        assert 'failed' in Path(log_path).read_text()

    def test_without_setup_returns_none(self):
        """Test errors_logged() before setup_logging()."""
        assert errors_logged() is None
