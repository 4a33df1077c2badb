# dbxl/statements.py

"""
Build the single statement that makes the database engine write the export file.

``SELECT ... INTO OUTFILE`` cannot emit a header row on its own, so the header
names are selected as literals and combined with the caller's query::

    (SELECT 'id','name') UNION ALL (SELECT id, name FROM users INTO OUTFILE '/tmp/tmp_x.csv' FIELDS ...)

The engine writes the literal row first, then the query's rows, to the same file
in one round trip.
"""

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

from .delimited import DELIMITED, DelimitedFormat

logger = logging.getLogger(__name__)

_FORBIDDEN_CHARS = ('\x00', '\x1a')


def quote_literal(value: str) -> str:
    """
    Quote ``value`` as a MySQL string literal.

    Backslashes and single quotes are doubled so the value can never close the
    literal early. NUL and Ctrl-Z are rejected outright.

    Assumes the server's default ``sql_mode``: with ``NO_BACKSLASH_ESCAPES``
    enabled a header containing ``\\`` is written with the backslash doubled.

    Example:
        >>> quote_literal("Aang's glider")
        "'Aang''s glider'"
    """
    value = str(value)
    for char in _FORBIDDEN_CHARS:
        if char in value:
            raise ValueError(f"Invalid literal: contains control character {char!r}: {value!r}")
    value = value.replace('\\', '\\\\').replace("'", "''")
    return f"'{value}'"


def _clean_query(query: str) -> str:
    """Strip whitespace and a trailing ';'. The engine reports anything else wrong."""
    return query.strip().rstrip(';').rstrip()


@dataclass(frozen=True)
class OutfileStatement:
    """
    Header-plus-data ``INTO OUTFILE`` statement for one export.

    Header *i* labels result column *i* of ``query``; the number of headers is
    not checked against the query.

    Attributes
    ----------
    query : str
        Caller's SELECT statement (trusted).
    headers : tuple of str
        Column display names, escaped before interpolation.
    path : str
        Output file path as seen by the database server.
    fmt : DelimitedFormat
        Field and line conventions written by the engine.
    """
    query: str
    headers: Tuple[str, ...]
    path: str
    fmt: DelimitedFormat = DELIMITED

    def __post_init__(self):
        if not self.headers:
            raise ValueError("At least one header is required")
        object.__setattr__(self, 'headers', tuple(self.headers))
        object.__setattr__(self, 'query', _clean_query(self.query))

    def header_select(self) -> str:
        return 'SELECT ' + ','.join(quote_literal(header) for header in self.headers)

    def outfile_clause(self) -> str:
        return f"INTO OUTFILE {quote_literal(self.path)} {self.fmt.outfile_options()}"

    def sql(self) -> str:
        return f"({self.header_select()}) UNION ALL ({self.query} {self.outfile_clause()})"

    def __str__(self) -> str:
        return self.sql()


def build_outfile_statement(query: str, headers: Sequence[str], path: str,
                            fmt: DelimitedFormat = DELIMITED) -> str:
    """
    Create the combined header and ``INTO OUTFILE`` statement.

    Args:
        query: SELECT statement whose rows are exported
        headers: Column display names, in result column order
        path: Server-side output path; must not exist yet
        fmt: Delimited layout (defaults to the shared convention)

    Returns:
        SQL statement string

    Raises:
        ValueError: If headers are empty or a header contains NUL/Ctrl-Z
    """
    statement = OutfileStatement(query, tuple(headers), str(path), fmt)
    return statement.sql()
