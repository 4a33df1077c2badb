# dbxl/errors.py
"""
Exceptions raised by the export pipeline.

Statement execution errors are not wrapped: whatever the database driver raises
(syntax errors, permission denied on the output file, duplicate output file)
reaches the caller unchanged.
"""

from typing import Optional


class ExportError(Exception):
    """Base class for errors raised by dbxl itself."""


class ConfigurationError(ExportError):
    """No directory usable by both the database engine and this process."""


class ConversionError(ExportError):
    """
    A delimited file could not be turned into a spreadsheet.

    Attributes
    ----------
    path : str or None
        The delimited input being converted.
    returncode : int or None
        Exit status of the native converter, when it ran at all.
    """

    def __init__(self, message: str, path: Optional[str] = None, returncode: Optional[int] = None):
        super().__init__(message)
        self.path = path
        self.returncode = returncode


class CleanupWarning(UserWarning):
    """The intermediate delimited file could not be deleted. Never raised."""
