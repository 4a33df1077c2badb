# dbxl/exporter.py
"""
Export the result of a SELECT statement to a styled spreadsheet.

The database engine writes the rows itself (``SELECT ... INTO OUTFILE``), which
is far faster than fetching them, and the delimited file is then converted to
a spreadsheet.

Basic usage::

    import dbxl

    with dbxl.connect('reporting') as db:
        exporter = dbxl.Exporter(db)
        path = exporter.export("SELECT id, name FROM benders ORDER BY id", ['ID', 'Name'])
        # path -> '/var/lib/mysql-files/tmp_3fa1c09b2e.xlsx', owned by the caller
"""

import enum
import logging
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .converters import Converter, default_converter
from .database import QueryExecutor
from .defaults import settings
from .errors import CleanupWarning
from .paths import MIN_TOKEN_BYTES, TemporaryPathResolver
from .statements import build_outfile_statement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportRequest:
    """
    A query and the display names of its result columns.

    Header *i* labels result column *i*. Headers must come from trusted code,
    not end users; they are escaped, but they still become SQL text.
    """
    query: str
    headers: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, 'headers', tuple(self.headers))


class ArtifactFormat(enum.Enum):
    DELIMITED = 'delimited'
    SPREADSHEET = 'spreadsheet'


@dataclass(frozen=True)
class TemporaryArtifact:
    path: str
    format: ArtifactFormat


@dataclass(frozen=True)
class Deleted:
    """The intermediate file is gone (or was never created)."""
    path: str
    ok = True


@dataclass(frozen=True)
class DeleteFailed:
    """The intermediate file could not be removed and may still exist."""
    path: str
    reason: str
    ok = False


def remove_intermediate(path: Union[str, Path]) -> Union[Deleted, DeleteFailed]:
    """
    Delete ``path`` without ever raising.

    Files written by the database server are often owned by the server's user,
    so a PermissionError here is expected and reported, not raised.
    """
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return Deleted(str(path))
    except OSError as e:
        return DeleteFailed(str(path), f"{e.__class__.__name__}: {e}")
    return Deleted(str(path))


class Exporter:
    """
    Run exports against one database.

    Parameters
    ----------
    executor : QueryExecutor
        Runs the export statement and reads ``secure_file_priv``; usually a
        ``dbxl.Database``.
    converter : Converter, optional
        Conversion strategy. Defaults to ``default_converter()`` for this platform.
    resolver : TemporaryPathResolver, optional
        Chooses the intermediate file path. Defaults to one bound to ``executor``.
    spreadsheet_suffix : str, optional
        Replaces the intermediate file's suffix. Defaults to the
        ``spreadsheet_suffix`` setting ('.xlsx').

    Notes
    -----
    * Each export uses its own randomly named file, so one Exporter may serve
      many threads at once.
    * The returned spreadsheet is never deleted by dbxl.
    * Nothing is retried.
    """

    def __init__(self,
                 executor: QueryExecutor,
                 converter: Optional[Converter] = None,
                 resolver: Optional[TemporaryPathResolver] = None,
                 spreadsheet_suffix: Optional[str] = None):
        self.executor = executor
        self.converter = converter if converter is not None else default_converter()
        self.resolver = resolver if resolver is not None else TemporaryPathResolver(executor)
        self.spreadsheet_suffix = spreadsheet_suffix or settings.get('spreadsheet_suffix', '.xlsx')

    def spreadsheet_path_for(self, delimited_path: str) -> str:
        return Path(delimited_path).with_suffix(self.spreadsheet_suffix).as_posix()

    def _cleanup(self, artifact: TemporaryArtifact) -> Union[Deleted, DeleteFailed]:
        result = remove_intermediate(artifact.path)
        if result.ok:
            logger.debug(f"Removed intermediate file {artifact.path}")
        else:
            logger.warning(f"Could not remove intermediate file {result.path}: {result.reason}")
            try:
                warnings.warn(f"Intermediate file left behind: {result.path} ({result.reason})",
                              CleanupWarning, stacklevel=3)
            except CleanupWarning:
                # an "error" warnings filter must not turn cleanup into a failure
                pass
        return result

    def export(self, request: Union[ExportRequest, str], headers: Optional[Sequence[str]] = None) -> str:
        """
        Export one query to a spreadsheet.

        Args:
            request: ExportRequest, or the SELECT statement itself
            headers: Column display names when ``request`` is a query string

        Returns:
            Path of the finished spreadsheet

        Raises:
            ConfigurationError: No usable export directory
            ConversionError: The delimited file could not be converted
            Exception: Database errors from the executor, unchanged
        """
        if not isinstance(request, ExportRequest):
            if headers is None:
                raise ValueError("headers are required when exporting a query string")
            request = ExportRequest(request, headers)

        delimited = TemporaryArtifact(self.resolver.resolve(), ArtifactFormat.DELIMITED)
        spreadsheet = TemporaryArtifact(self.spreadsheet_path_for(delimited.path), ArtifactFormat.SPREADSHEET)
        statement = build_outfile_statement(request.query, request.headers, delimited.path)

        logger.debug(f"Export statement: {statement}")
        # a file that was already there when the statement failed belongs to someone else
        preexisting = Path(delimited.path).exists()
        try:
            self.executor.execute_statement(statement)
        except Exception as e:
            logger.error(f"Export statement failed: {e}")
            if not preexisting and Path(delimited.path).exists():
                self._cleanup(delimited)
            raise
        logger.info(f"Database wrote {delimited.path}")

        try:
            self.converter.convert(delimited.path, spreadsheet.path)
        except Exception as e:
            logger.error(f"Export to {spreadsheet.path} failed: {e}")
            raise
        finally:
            self._cleanup(delimited)

        logger.info(f"Spreadsheet ready: {spreadsheet.path}")
        return spreadsheet.path

    def export_many(self, requests: Sequence[ExportRequest], max_workers: int = 4) -> List[str]:
        """
        Run independent exports on a thread pool.

        Returns spreadsheet paths in request order. Every export runs to
        completion; the first failure (in request order) is then raised.
        """
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='dbxl-export') as pool:
            futures = [pool.submit(self.export, request) for request in requests]
        paths = []
        for future in futures:
            paths.append(future.result())
        return paths


def export(executor: QueryExecutor, query: str, headers: Sequence[str],
           converter: Optional[Converter] = None) -> str:
    """
    One-off export using the platform default converter.

    Example:
        path = export(db, "SELECT name, nation FROM benders", ['Name', 'Nation'])
    """
    return Exporter(executor, converter=converter).export(ExportRequest(query, headers))


def sweep_stale_exports(directory: Optional[Union[str, Path]] = None,
                        max_age_hours: Optional[float] = None,
                        pattern: Optional[str] = None,
                        dry_run: bool = False) -> List[str]:
    """
    Remove intermediate files left behind by failed cleanups.

    Args:
        directory: Directory to sweep (defaults to ``export_dir`` or the system temp directory)
        max_age_hours: Keep files newer than this (defaults to the ``stale_export_hours`` setting)
        pattern: Glob for intermediate files (defaults to ``tmp_??????????.csv``, the resolver's naming)
        dry_run: Only report what would be deleted

    Returns:
        List of deleted (or would-be-deleted) file paths
    """
    if directory is None:
        directory = TemporaryPathResolver().writable_directory()
    max_age_hours = max_age_hours if max_age_hours is not None else settings.get('stale_export_hours', 24)
    if pattern is None:
        token = '?' * (2 * MIN_TOKEN_BYTES)
        pattern = f"{settings.get('temp_file_prefix', 'tmp_')}{token}{settings.get('delimited_suffix', '.csv')}"

    directory = Path(directory)
    if not directory.is_dir():
        logger.warning(f"Export directory does not exist: {directory}")
        return []

    cutoff = datetime.now() - timedelta(hours=max_age_hours)
    removed = []
    for path in directory.glob(pattern):
        if not path.is_file():
            continue
        if datetime.fromtimestamp(path.stat().st_mtime) >= cutoff:
            continue
        if dry_run:
            logger.info(f"Would delete: {path}")
        else:
            result = remove_intermediate(path)
            if not result.ok:
                logger.warning(f"Failed to delete {path}: {result.reason}")
                continue
            logger.info(f"Deleted stale export: {path}")
        removed.append(str(path))

    if not dry_run and removed:
        logger.info(f"Cleaned up {len(removed)} stale export files")
    return removed
