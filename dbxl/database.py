# dbxl/database.py
"""
Database connection wrapper providing the two calls the exporter needs:
run a statement, and read a single value.
"""

import importlib
import importlib.util
import logging
from contextlib import contextmanager
from typing import Any, List, Optional, Protocol

logger = logging.getLogger(__name__)


class QueryExecutor(Protocol):
    """Anything that can run the export statement and read a server setting."""

    def execute_statement(self, sql: str) -> None:
        ...

    def query_scalar(self, sql: str) -> Any:
        ...


# INTO OUTFILE is MySQL/MariaDB syntax, so only that family is listed.
DRIVERS = {
    'MySQLdb': {
        'package': 'mysqlclient',
        'priority': 11,
        'param_map': {'database': 'db', 'password': 'passwd'},
        'required_params': {'host', 'database', 'user'},
        'optional_params': {'port', 'password', 'charset', 'connect_timeout', 'unix_socket',
                            'read_default_file', 'init_command', 'ssl'},
    },
    'pymysql': {
        'package': 'pymysql',
        'priority': 12,
        'param_map': {'database': 'db', 'password': 'passwd'},
        'required_params': {'host', 'database', 'user'},
        'optional_params': {'port', 'password', 'charset', 'connect_timeout', 'read_timeout',
                            'write_timeout', 'unix_socket', 'autocommit', 'ssl'},
    },
    'mysql.connector': {
        'package': 'mysql-connector-python',
        'priority': 13,
        'param_map': {},
        'required_params': {'host', 'database', 'user'},
        'optional_params': {'port', 'password', 'charset', 'collation', 'autocommit',
                            'connection_timeout', 'use_unicode', 'unix_socket'},
    },
}


def get_available_drivers() -> List[str]:
    """Importable drivers, preferred first."""
    available = []
    for driver_name in sorted(DRIVERS, key=lambda d: DRIVERS[d]['priority']):
        try:
            if importlib.util.find_spec(driver_name):
                available.append(driver_name)
        except ModuleNotFoundError:
            # parent package of a dotted name (mysql.connector) is missing
            continue
    return available


def validate_connection_params(driver_name: str, **params) -> dict:
    """
    Check required parameters and map them to the driver's keyword names.

    Raises:
        ValueError: If the driver is unknown or required parameters are missing
    """
    if driver_name not in DRIVERS:
        raise ValueError(f"Unknown driver: {driver_name}")
    driver_info = DRIVERS[driver_name]

    missing = driver_info['required_params'] - set(params)
    if missing:
        raise ValueError(f"Missing required parameters for {driver_name}: {sorted(missing)}")

    allowed = driver_info['required_params'] | driver_info['optional_params']
    param_map = driver_info['param_map']
    return {param_map.get(key, key): value for key, value in params.items()
            if key in allowed and value is not None}


class Database:
    """
    Wraps a DB-API connection and implements ``QueryExecutor``.

    Attribute access not handled here is delegated to the underlying connection,
    so ``db.commit()`` and driver specific methods keep working.

    Example
    -------
    ::

        with mysql(user='katara', password='...', database='water_tribe') as db:
            db.execute_statement("SET SESSION sql_mode = 'ANSI_QUOTES'")
            print(db.query_scalar("SELECT @@GLOBAL.secure_file_priv"))
    """

    _local_attrs = ['_connection', 'interface', 'database_name']

    def __init__(self, connection, interface, database_name: Optional[str] = None):
        self._connection = connection
        self.interface = interface
        self.database_name = database_name

    def __getattr__(self, key: str) -> Any:
        return getattr(self._connection, key)

    def __setattr__(self, key: str, value: Any) -> None:
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._connection, key, value)

    def __str__(self) -> str:
        if self.database_name:
            return f'Database({self.database_name}:{self.interface.__name__})'
        return f'Database({self.interface.__name__})'

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def cursor(self):
        return self._connection.cursor()

    def execute_statement(self, sql: str) -> None:
        """Run a statement that returns no rows. Driver errors propagate unchanged."""
        cursor = self._connection.cursor()
        try:
            logger.debug(f"Executing: {sql}")
            cursor.execute(sql)
        finally:
            cursor.close()

    def query_scalar(self, sql: str) -> Any:
        """Return the first column of the first row, or None when there are no rows."""
        cursor = self._connection.cursor()
        try:
            cursor.execute(sql)
            row = cursor.fetchone()
        finally:
            cursor.close()
        if row is None:
            return None
        return row[0]

    @contextmanager
    def transaction(self):
        """
        Commit on success, roll back on exception.

        Example:
            with db.transaction():
                db.execute_statement("UPDATE ...")
        """
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise

    @classmethod
    def create(cls, driver: Optional[str] = None, **kwargs) -> 'Database':
        """
        Connect using ``driver``, or the first importable MySQL driver.

        Raises:
            ImportError: If no MySQL driver is installed
            ValueError: If connection parameters are invalid
        """
        db_driver = None
        driver_name = None
        if driver:
            if driver not in DRIVERS:
                raise ValueError(f"Unknown driver: {driver}")
            try:
                db_driver = importlib.import_module(driver)
                driver_name = driver
            except ImportError:
                logger.warning(f"Driver '{driver}' not available, falling back to default")

        if db_driver is None:
            for driver_name in get_available_drivers():
                try:
                    db_driver = importlib.import_module(driver_name)
                    break
                except ImportError:
                    pass

        if db_driver is None:
            packages = ', '.join(info['package'] for info in DRIVERS.values())
            raise ImportError(f"No MySQL driver found. Install one of: {packages}")

        params = validate_connection_params(driver_name, **kwargs)
        connection = db_driver.connect(**params)
        return cls(connection, db_driver, kwargs.get('database'))


def mysql(user: str, password: Optional[str] = None, database: str = 'mysql',
          host: str = 'localhost', port: int = 3306, driver: Optional[str] = None, **kwargs) -> Database:
    """Create MySQL/MariaDB connection."""
    return Database.create(driver=driver, user=user, password=password, database=database,
                           host=host, port=port, **kwargs)
