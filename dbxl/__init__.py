# dbxl/__init__.py
"""
DBXL - database query to spreadsheet export

Lets the database engine write query results straight to disk with
``SELECT ... INTO OUTFILE`` and turns that file into a styled .xlsx workbook:

- Header row plus data in one statement, one round trip
- Export directory negotiated with the server's ``secure_file_priv``
- Native ``csv2xlsx`` converter where available, openpyxl streaming elsewhere
- Best-effort cleanup of the intermediate file
- YAML configuration with encrypted connection passwords

Basic usage::

    import dbxl

    with dbxl.connect('reporting') as db:
        path = dbxl.export(db, "SELECT id, name FROM benders", ['ID', 'Name'])

With explicit collaborators::

    exporter = dbxl.Exporter(db, converter=dbxl.StreamingConverter())
    path = exporter.export(dbxl.ExportRequest("SELECT ...", ['A', 'B']))
"""

__version__ = '0.3.0'

from .config import connect, set_config_file, get_setting
from .database import Database, QueryExecutor, mysql
from .errors import ExportError, ConfigurationError, ConversionError, CleanupWarning
from .converters import (Converter, NativeConverter, StreamingConverter, ConversionStyle,
                         BODY_STYLE, HEADER_STYLE, default_converter)
from .paths import TemporaryPathResolver
from .statements import build_outfile_statement, OutfileStatement
from .exporter import ExportRequest, Exporter, export, sweep_stale_exports
from .logging_utils import setup_logging, errors_logged

__all__ = [
    'connect',
    'set_config_file',
    'get_setting',
    'Database',
    'QueryExecutor',
    'mysql',
    'ExportError',
    'ConfigurationError',
    'ConversionError',
    'CleanupWarning',
    'Converter',
    'NativeConverter',
    'StreamingConverter',
    'ConversionStyle',
    'BODY_STYLE',
    'HEADER_STYLE',
    'default_converter',
    'TemporaryPathResolver',
    'build_outfile_statement',
    'OutfileStatement',
    'ExportRequest',
    'Exporter',
    'export',
    'sweep_stale_exports',
    'setup_logging',
    'errors_logged',
]
