# dbxl/logging_utils.py
"""
Logging setup for scripts that run exports.

Creates one log file per run, named like ``nightly_export_20260119_020000.log``,
and remembers whether anything at ERROR or above was logged so a script can
decide to send a notification.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .defaults import settings

logger = logging.getLogger(__name__)

_error_handler: Optional['ErrorCountHandler'] = None
_log_path: Optional[str] = None


class ErrorCountHandler(logging.Handler):
    """Counts ERROR and CRITICAL records; writes nothing."""

    def __init__(self):
        super().__init__(level=logging.ERROR)
        self.error_count = 0

    def emit(self, record):
        if record.levelno >= logging.ERROR:
            self.error_count += 1


def setup_logging(
    script_name: Optional[str] = None,
    log_dir: Optional[str] = None,
    level: Optional[str] = None,
    console: Optional[bool] = None
) -> str:
    """
    Configure the root logger for an export script.

    Args:
        script_name: Base name for the log file (defaults to the running script's name)
        log_dir: Directory for log files (defaults to ``logging.directory`` setting)
        level: DEBUG, INFO, WARNING or ERROR (defaults to ``logging.level`` setting)
        console: Also log to stdout (defaults to ``logging.console`` setting)

    Returns:
        Path of the log file

    Example
    -------
    ::

        import dbxl

        dbxl.setup_logging('nightly_export', level='DEBUG')
        ...
        if dbxl.errors_logged():
            notify_admins()
    """
    global _error_handler, _log_path

    logging_config = settings.get('logging', {})
    if script_name is None:
        script_name = Path(sys.argv[0]).stem or 'dbxl'
    log_dir = log_dir or logging_config.get('directory', './logs')
    level = (level or logging_config.get('level', 'INFO')).upper()
    console = console if console is not None else logging_config.get('console', True)
    filename_format = logging_config.get('filename_format', '%Y%m%d_%H%M%S')

    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)
    if filename_format:
        log_file = log_dir_path / f"{script_name}_{datetime.now().strftime(filename_format)}.log"
    else:
        log_file = log_dir_path / f"{script_name}.log"

    formatter = logging.Formatter(
        logging_config.get('format', '%(asctime)s [%(levelname)s] %(name)s: %(message)s'),
        datefmt=logging_config.get('timestamp_format', '%Y-%m-%d %H:%M:%S'))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    _error_handler = ErrorCountHandler()
    root_logger.addHandler(_error_handler)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _log_path = str(log_file)
    logging.info(f"Logging initialized: {log_file}")
    return _log_path


def errors_logged() -> Optional[str]:
    """
    Path of the current log file if any ERROR or CRITICAL message was logged.

    Returns None when nothing went wrong or ``setup_logging()`` was never called.
    """
    if _error_handler is None:
        logger.warning("errors_logged() called but setup_logging() was not called")
        return None
    if _error_handler.error_count == 0:
        return None
    return _log_path
