# dbxl/delimited.py

"""
The delimited text layout shared by the database export and both converters.

The engine writes every field enclosed in double quotes, doubles embedded
quotes, separates fields with a tab and ends every line with ``\\n``. The first
line is always the header row.
"""

import csv
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, TextIO, Union

from .errors import ConversionError

logger = logging.getLogger(__name__)

_NUMERIC = re.compile(r'-?(?:\d+\.?\d*|\.\d+)')


@dataclass(frozen=True)
class DelimitedFormat:
    """
    Field and line conventions for the intermediate file.

    ``escapechar`` equals ``quotechar``: an embedded quote is written twice.
    """
    delimiter: str = '\t'
    quotechar: str = '"'
    escapechar: str = '"'
    lineterminator: str = '\n'
    encoding: str = 'utf-8'

    def outfile_options(self) -> str:
        """Render the ``FIELDS ... LINES ...`` clause of ``SELECT ... INTO OUTFILE``."""
        return (f"FIELDS TERMINATED BY {_sql_char(self.delimiter)} "
                f"ENCLOSED BY {_sql_char(self.quotechar)} "
                f"ESCAPED BY {_sql_char(self.escapechar)} "
                f"LINES TERMINATED BY {_sql_char(self.lineterminator)}")

    def csv_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``csv.reader`` matching this layout."""
        return {
            'delimiter': self.delimiter,
            'quotechar': self.quotechar,
            'doublequote': self.escapechar == self.quotechar,
            'escapechar': None if self.escapechar == self.quotechar else self.escapechar,
            'strict': True,
        }


def _sql_char(char: str) -> str:
    """Quote a single control character the way MySQL string literals expect."""
    escapes = {'\t': '\\t', '\n': '\\n', '\r': '\\r', '\\': '\\\\', "'": "\\'", '"': '"'}
    return f"'{escapes.get(char, char)}'"


DELIMITED = DelimitedFormat()


def is_numeric(value: str) -> bool:
    """
    True for cells the spreadsheet should store as numbers.

    Accepts an optional leading minus, digits and at most one decimal point,
    with at least one digit: ``'42'``, ``'-3.5'``, ``'.5'``, ``'7.'``.
    """
    return bool(value) and _NUMERIC.fullmatch(value) is not None


def coerce_cell(value: str) -> Union[str, int, float]:
    """Return ``value`` as int or float when numeric, otherwise unchanged."""
    if not is_numeric(value):
        return value
    if '.' in value:
        return float(value)
    return int(value)


class DelimitedReader:
    """
    Iterate rows of a delimited export file as lists of strings.

    Parsing is strict: an unterminated or stray quote, or a row whose field count
    differs from the header row, raises ConversionError instead of yielding
    misaligned data.

    Example
    -------
    ::

        with DelimitedReader.open('/tmp/tmp_3fa1c09b2e.csv') as reader:
            header = reader.headers
            for row in reader:
                print(row)
    """

    def __init__(self, fp: TextIO, fmt: DelimitedFormat = DELIMITED, source: Optional[str] = None):
        self.fp = fp
        self.fmt = fmt
        self.source = source or getattr(fp, 'name', None)
        self._rdr = csv.reader(fp, **fmt.csv_kwargs())
        self._headers: Optional[List[str]] = None
        self.row_count = 0

    @classmethod
    def open(cls, path: Union[str, Path], fmt: DelimitedFormat = DELIMITED) -> 'DelimitedReader':
        try:
            fp = open(path, 'r', encoding=fmt.encoding, newline='')
        except OSError as e:
            raise ConversionError(f"Cannot open delimited file {path}: {e}", path=str(path)) from e
        return cls(fp, fmt, source=str(path))

    @property
    def headers(self) -> List[str]:
        """The header row, read on first access."""
        if self._headers is None:
            first = self._next_row()
            if first is None:
                raise ConversionError(f"Delimited file {self.source} is empty", path=self.source)
            self._headers = first
        return self._headers

    def _next_row(self) -> Optional[List[str]]:
        try:
            return next(self._rdr)
        except StopIteration:
            return None
        except (csv.Error, UnicodeDecodeError) as e:
            raise ConversionError(
                f"Malformed delimited file {self.source} near line {self._rdr.line_num}: {e}",
                path=self.source) from e

    def __iter__(self) -> Iterator[List[str]]:
        width = len(self.headers)
        while True:
            row = self._next_row()
            if row is None:
                return
            if len(row) != width:
                raise ConversionError(
                    f"Row {self.row_count + 1} of {self.source} has {len(row)} fields, "
                    f"header has {width} (delimiter or line terminator mismatch)",
                    path=self.source)
            self.row_count += 1
            yield row

    def close(self):
        if self.fp and hasattr(self.fp, 'close'):
            self.fp.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
