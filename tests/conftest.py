# tests/conftest.py
"""
Shared test fixtures and configuration for pytest.
"""

import copy
import re
import sqlite3
import threading
from pathlib import Path

import pytest

import dbxl.config
from dbxl.defaults import settings


_STATEMENT = re.compile(
    r"^\(SELECT (?P<headers>.*?)\) UNION ALL \((?P<query>.*) INTO OUTFILE '(?P<path>(?:[^']|'')*)' "
    r"FIELDS TERMINATED BY .* LINES TERMINATED BY .*\)$",
    re.DOTALL)


def _mysql_unescape(text: str) -> str:
    """sqlite treats backslashes literally; MySQL would collapse doubled ones."""
    return text.replace('\\\\', '\\')


class FakeOutfileEngine:
    """
    Stands in for a MySQL server.

    Runs the inner query on SQLite and writes the header plus rows to the
    INTO OUTFILE path the way MySQL does with the shared field options.
    """

    def __init__(self, secure_file_priv=''):
        self.connection = sqlite3.connect(':memory:', check_same_thread=False)
        self.secure_file_priv = secure_file_priv
        self.statements = []
        self._lock = threading.Lock()

    def execute_statement(self, sql: str) -> None:
        with self._lock:
            self._execute(sql)

    def _execute(self, sql: str) -> None:
        self.statements.append(sql)
        match = _STATEMENT.match(sql)
        if not match:
            self.connection.execute(sql)
            return

        path = Path(_mysql_unescape(match['path'].replace("''", "'")))
        if path.exists():
            raise sqlite3.OperationalError(f"File '{path}' already exists")

        header = [_mysql_unescape(str(v)) for v in self.connection.execute(f"SELECT {match['headers']}").fetchone()]
        rows = self.connection.execute(match['query']).fetchall()
        with open(path, 'w', encoding='utf-8', newline='') as fp:
            for row in [header] + [list(r) for r in rows]:
                fields = ['"' + ('' if v is None else str(v)).replace('"', '""') + '"' for v in row]
                fp.write('\t'.join(fields) + '\n')

    def query_scalar(self, sql: str):
        if sql.strip().upper() == 'SELECT @@GLOBAL.SECURE_FILE_PRIV':
            return self.secure_file_priv
        with self._lock:
            row = self.connection.execute(sql).fetchone()
        return row[0] if row else None

    def close(self):
        self.connection.close()


@pytest.fixture(autouse=True)
def isolated_settings():
    """Restore global settings and forget any loaded config after each test."""
    saved = copy.deepcopy(settings)
    yield settings
    settings.clear()
    settings.update(saved)
    dbxl.config._config_manager = None


@pytest.fixture
def engine(tmp_path):
    """Fake engine whose secure_file_priv points at a per-test directory."""
    export_dir = tmp_path / 'mysql-files'
    export_dir.mkdir()
    fake = FakeOutfileEngine(secure_file_priv=str(export_dir))
    fake.connection.executescript("""
        CREATE TABLE benders (id INTEGER PRIMARY KEY, name TEXT, nation TEXT, element TEXT);
        INSERT INTO benders VALUES (1, 'Aang', 'Air Nomads', 'air');
        INSERT INTO benders VALUES (2, 'Katara', 'Water Tribe', 'water');
        INSERT INTO benders VALUES (3, 'Toph', 'Earth Kingdom', 'earth');
        INSERT INTO benders VALUES (4, 'Zuko', 'Fire Nation', 'fire');
        CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT);
        INSERT INTO people VALUES (1, 'Alice');
        INSERT INTO people VALUES (2, 'Bob');
    """)
    yield fake
    fake.close()


@pytest.fixture
def write_delimited(tmp_path):
    """Write rows to a file in the shared delimited layout and return its path."""
    def _write(rows, name='input.csv'):
        path = tmp_path / name
        with open(path, 'w', encoding='utf-8', newline='') as fp:
            for row in rows:
                fp.write('\t'.join('"' + str(v).replace('"', '""') + '"' for v in row) + '\n')
        return path
    return _write
