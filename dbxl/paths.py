# dbxl/paths.py

"""
Pick where the database engine writes the export file.

The engine only writes where ``secure_file_priv`` allows, and this process has
to read the file afterwards, so the directory must be visible to both.
"""

import logging
import math
import secrets
import tempfile
from pathlib import Path
from typing import Optional, Union

from .database import QueryExecutor
from .defaults import settings
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SECURE_FILE_PRIV_SQL = "SELECT @@GLOBAL.secure_file_priv"
MIN_TOKEN_BYTES = 5


def collision_probability(n: int, token_bytes: int = MIN_TOKEN_BYTES) -> float:
    """
    Birthday bound for ``n`` simultaneous files sharing a directory.

    With the default 10 hex characters (40 bits), 10,000 concurrent exports
    collide with probability of about 4.5e-5; 1,000 with about 4.5e-7.
    """
    if n < 2:
        return 0.0
    space = 2 ** (8 * token_bytes)
    return -math.expm1(-n * (n - 1) / (2 * space))


class TemporaryPathResolver:
    """
    Generate a fresh, unused-looking path for the engine's output file.

    Directory precedence:

    1. ``directory`` passed to the constructor
    2. the ``export_dir`` setting
    3. the engine's ``secure_file_priv`` setting
    4. the OS temporary directory, when the engine reports NULL or ''

    Filenames are ``<prefix><hex token><suffix>``, e.g. ``tmp_9f2c01ab7e.csv``.
    Nothing is created on disk and collisions are not retried; see
    ``collision_probability`` for the odds.

    Example
    -------
    ::

        resolver = TemporaryPathResolver(db)
        path = resolver.resolve()   # '/var/lib/mysql-files/tmp_3fa1c09b2e.csv'
    """

    def __init__(self,
                 executor: Optional[QueryExecutor] = None,
                 directory: Optional[Union[str, Path]] = None,
                 prefix: Optional[str] = None,
                 suffix: Optional[str] = None,
                 token_bytes: int = MIN_TOKEN_BYTES):
        if token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be at least {MIN_TOKEN_BYTES} (10 hex characters)")
        self.executor = executor
        self.directory = directory
        self.prefix = prefix if prefix is not None else settings.get('temp_file_prefix', 'tmp_')
        self.suffix = suffix if suffix is not None else settings.get('delimited_suffix', '.csv')
        self.token_bytes = token_bytes

    def _engine_directory(self) -> Optional[str]:
        if self.executor is None:
            return None
        try:
            value = self.executor.query_scalar(SECURE_FILE_PRIV_SQL)
        except Exception as e:
            raise ConfigurationError(f"Could not read secure_file_priv from the database: {e}") from e
        if isinstance(value, bytes):
            value = value.decode('utf-8')
        return value or None

    def writable_directory(self) -> Path:
        """
        Directory both sides can use.

        Raises:
            ConfigurationError: If the directory cannot be determined or does not
                exist from this process's point of view
        """
        source = 'argument'
        directory = self.directory
        if not directory:
            directory, source = settings.get('export_dir'), 'export_dir setting'
        if not directory:
            directory, source = self._engine_directory(), 'secure_file_priv'
        if not directory:
            try:
                directory, source = tempfile.gettempdir(), 'system temp directory'
            except FileNotFoundError as e:
                raise ConfigurationError(f"No writable temporary directory: {e}") from e

        path = Path(directory)
        if not path.is_dir():
            raise ConfigurationError(f"Export directory from {source} is not a directory: {directory}")
        logger.debug(f"Using export directory {path} ({source})")
        return path

    def resolve(self) -> str:
        """Return a new file path as a forward-slash string."""
        filename = f"{self.prefix}{secrets.token_hex(self.token_bytes)}{self.suffix}"
        return (self.writable_directory() / filename).as_posix()
