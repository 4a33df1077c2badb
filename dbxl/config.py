# dbxl/config.py
"""
YAML configuration: global settings and named database connections.

Example ``dbxl.yml``::

    settings:
      export_dir: /var/lib/mysql-files
      native_converter: /opt/csv2xlsx/csv2xlsx
      logging:
        level: DEBUG

    connections:
      reporting:
        type: mysql
        host: db.ba-sing-se.internal
        database: earth_kingdom
        user: dai_li
        encrypted_password: gAAAAABh...
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from cryptography.fernet import Fernet, InvalidToken

from .defaults import settings
from .database import Database

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_ENV = 'DBXL_ENCRYPTION_KEY'
SUPPORTED_TYPES = ('mysql', 'mariadb')

_config_manager: Optional['ConfigManager'] = None


def _merge(target: dict, updates: dict) -> None:
    """Recursive dict update so partial ``logging`` sections keep their defaults."""
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


def _lookup(key: str, default: Any = None) -> Any:
    value = settings
    for k in key.split('.'):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default
    return value


def _expand_env(value: Any) -> Any:
    """Replace a whole-string ``${VAR}`` with the environment variable's value."""
    if isinstance(value, str) and value.startswith('${') and value.endswith('}'):
        env_var = value[2:-1]
        env_value = os.environ.get(env_var)
        if env_value is None:
            raise ValueError(f"Environment variable {env_var} not set")
        return env_value
    return value


class ConfigManager:
    """
    Load and query a dbxl YAML configuration file.

    Search order when no file is given:

    1. ``./dbxl.yml``
    2. ``./dbxl.yaml``
    3. ``~/.config/dbxl.yml``
    4. ``~/.config/dbxl.yaml``

    Loading a file merges its ``settings`` section into ``dbxl.defaults.settings``,
    which every module reads.

    Raises
    ------
    FileNotFoundError
        If no config file exists
    ValueError
        If the file is not valid YAML or a section is malformed
    """

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._fernet = None
        self._apply_settings()

    @staticmethod
    def candidates() -> List[Path]:
        return [
            Path('dbxl.yml'),
            Path('dbxl.yaml'),
            Path.home() / '.config' / 'dbxl.yml',
            Path.home() / '.config' / 'dbxl.yaml',
        ]

    def _find_config_file(self, config_file: Optional[str]) -> Path:
        if config_file:
            path = Path(config_file)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            return path

        for candidate in self.candidates():
            if candidate.exists():
                return candidate
        raise FileNotFoundError(
            "No config file found. Looked in: " + ", ".join(str(c) for c in self.candidates()))

    def _load_config(self) -> Dict[str, Any]:
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to load config file {self.config_file}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Invalid config file {self.config_file}.")
        if not isinstance(config.get('settings', {}), dict):
            raise ValueError(f"Invalid config file {self.config_file}: 'settings' must be a dictionary")
        connections = config.get('connections', {})
        if not isinstance(connections, dict):
            raise ValueError(f"Invalid config file {self.config_file}: 'connections' must be a dictionary")
        for name, conn in connections.items():
            if not isinstance(conn, dict) or ('type' not in conn and 'driver' not in conn):
                raise ValueError(f"Invalid connection '{name}' in {self.config_file}: 'type' or 'driver' is required")

        logger.info(f"Loaded config from {self.config_file}")
        return config

    def _apply_settings(self) -> None:
        _merge(settings, self.config.get('settings', {}))

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Setting value using dot notation, e.g. ``'logging.level'``.

        Values come from the merged settings, so built-in defaults are visible too.
        """
        return _lookup(key, default)

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            key = os.environ.get(ENCRYPTION_KEY_ENV)
            if not key:
                raise ValueError(f"Encrypted password found but {ENCRYPTION_KEY_ENV} is not set. "
                                 f"Generate one with dbxl.config.generate_encryption_key().")
            self._fernet = Fernet(key.encode())
        return self._fernet

    def decrypt_password(self, encrypted_password: str) -> str:
        try:
            return self._get_fernet().decrypt(encrypted_password.encode()).decode()
        except InvalidToken as e:
            raise ValueError("Failed to decrypt password: wrong key or corrupted value") from e

    def encrypt_password(self, password: str) -> str:
        return self._get_fernet().encrypt(password.encode()).decode()

    def list_connections(self) -> List[str]:
        return list(self.config.get('connections', {}).keys())

    def get_connection_config(self, name: str) -> Dict[str, Any]:
        """Connection parameters with the password decrypted or expanded."""
        connections = self.config.get('connections', {})
        if name not in connections:
            raise ValueError(f"Connection '{name}' not found in config. "
                             f"Available connections: {list(connections.keys())}")

        config = {key: _expand_env(value) for key, value in connections[name].items()}
        if 'encrypted_password' in config:
            config['password'] = self.decrypt_password(config.pop('encrypted_password'))
        return config


def generate_encryption_key() -> str:
    """New Fernet key; store it in the DBXL_ENCRYPTION_KEY environment variable."""
    return Fernet.generate_key().decode()


def encrypt_password(password: str, encryption_key: Optional[str] = None) -> str:
    """Encrypt ``password`` for an ``encrypted_password`` entry."""
    key = encryption_key or os.environ.get(ENCRYPTION_KEY_ENV)
    if not key:
        raise ValueError(f"No encryption key given and {ENCRYPTION_KEY_ENV} is not set")
    return Fernet(key.encode()).encrypt(password.encode()).decode()


def set_config_file(config_file: str) -> None:
    """Set the configuration file to use globally."""
    global _config_manager
    _config_manager = ConfigManager(config_file)


def _get_manager(config_file: Optional[str] = None) -> 'ConfigManager':
    global _config_manager
    if config_file:
        return ConfigManager(config_file)
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_setting(key: str, default: Any = None, config_file: Optional[str] = None) -> Any:
    """
    Get a setting value.

    Works without any config file: built-in defaults from ``dbxl.defaults`` apply.

    Example:
        export_dir = get_setting('export_dir')
        level = get_setting('logging.level', 'INFO')
    """
    try:
        manager = _get_manager(config_file)
    except FileNotFoundError:
        if config_file:
            raise
        logger.debug("No config file found, using default settings")
        return _lookup(key, default)
    return manager.get_setting(key, default)


def connect(name: str, password: Optional[str] = None, config_file: Optional[str] = None) -> Database:
    """
    Connect to a named database from configuration.

    Example:
        with connect('reporting') as db:
            path = Exporter(db).export("SELECT * FROM sky_bison", ['Name', 'Temple'])
    """
    config = _get_manager(config_file).get_connection_config(name)
    if password:
        config['password'] = password

    db_type = str(config.pop('type', 'mysql')).lower()
    if db_type not in SUPPORTED_TYPES:
        raise ValueError(f"Connection '{name}' has type '{db_type}'; only {SUPPORTED_TYPES} support INTO OUTFILE")
    driver = config.pop('driver', None)

    info = {key: val for key, val in config.items() if key != 'password'}
    logger.debug(f"Connecting to database {name} with config: {info}")
    return Database.create(driver=driver, **config)
