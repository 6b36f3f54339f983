"""Database configuration for gosling.

This module provides:
- Discovery of dbconf.yml / dbconf.yaml by walking up from a directory
- Per-environment sections with environment variable expansion
- Configuration schema validation
- SQLAlchemy engine creation for each supported driver
"""

import os
import re
import yaml
import logging
from copy import deepcopy
from pathlib import Path
from typing import Dict, Any, Optional, Union
from jsonschema import validate, ValidationError
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url

from .dialects import SqlDialect, dialect_by_name
from .exceptions import ConfigError
from .ledger import DEFAULT_TABLE

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ('dbconf.yaml', 'dbconf.yml')
DEFAULT_ENV = 'development'

# Environment section schema
ENV_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["driver", "open"],
    "properties": {
        "driver": {"type": "string", "minLength": 1},
        "open": {"type": "string"},
        "dialect": {"type": "string"},
        "migrationsDir": {"type": "string"},
        "table": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_.]*$"}
    }
}

# Environment variable overrides applied on top of the config file
ENV_OVERRIDES = {
    'driver': 'GOSLING_DRIVER',
    'open': 'GOSLING_OPEN',
    'dialect': 'GOSLING_DIALECT',
}

# Variables used when no config file exists at all
DEFAULT_ENV_VARS = {
    'driver': 'DB_DRIVER',
    'open': 'DB_DSN',
    'dialect': 'DB_DIALECT',
    'migrationsDir': 'DB_MIGRATIONS_DIR',
}

# Driver name -> (default dialect, SQLAlchemy URL scheme)
DRIVERS = {
    'postgres': ('postgres', 'postgresql+psycopg2'),
    'redshift': ('redshift', 'postgresql+psycopg2'),
    'mysql': ('mysql', 'mysql+pymysql'),
    'mymysql': ('mysql', 'mysql+pymysql'),
    'sqlite3': ('sqlite3', 'sqlite'),
    'duckdb': ('duckdb', 'duckdb'),
}

_ENV_VAR_PATTERN = re.compile(r'\$(\w+)|\$\{(\w+)\}')
_LEADING_INDENT = re.compile(r'^[ \t]+', re.MULTILINE)


def expand_env(value: str) -> str:
    """Expand $VAR and ${VAR} references; unset variables expand to ''."""
    return _ENV_VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1) or m.group(2), ''), value)


def normalize_driver(driver: str) -> str:
    """Lower-case a driver name and strip any import-path style prefix."""
    return driver.strip().lower().rstrip('/').split('/')[-1]


def find_db_conf(db_dir: Union[str, Path] = '') -> Optional[Path]:
    """
    Look for a dbconf file starting at db_dir and walking up.

    Each directory is checked for dbconf.yaml / dbconf.yml directly and in
    a `db/` subdirectory.

    Args:
        db_dir: Directory to start from ('' means the working directory)

    Returns:
        Path to the config file or None if not found
    """
    current = Path(db_dir or '.').resolve()

    while True:
        for candidate_dir in (current, current / 'db'):
            for name in CONFIG_FILE_NAMES:
                path = candidate_dir / name
                if path.is_file():
                    return path

        if current.parent == current:
            return None
        current = current.parent


class DBConf:
    """Connection and migration settings for one environment."""

    def __init__(self, migrations_dir: Union[str, Path], env: str, driver: str, open_str: str,
                 dialect: Optional[str] = None, table: str = DEFAULT_TABLE):
        self.migrations_dir = str(migrations_dir)
        self.env = env
        self.driver = normalize_driver(driver)
        self.open_str = open_str

        if dialect is None:
            if self.driver not in DRIVERS:
                raise ConfigError(f"Unsupported driver '{driver}' and no dialect configured")
            dialect = DRIVERS[self.driver][0]
        self.dialect_name = dialect
        self.dialect: SqlDialect = dialect_by_name(dialect)
        self.table = table

    @classmethod
    def load(cls, db_dir: Union[str, Path] = '', env: str = DEFAULT_ENV) -> "DBConf":
        """
        Load configuration for an environment.

        Args:
            db_dir: Directory to start the dbconf search from
            env: Environment section to read

        Returns:
            DBConf instance

        Raises:
            ConfigError: If no usable configuration is found or it is invalid
        """
        path = find_db_conf(db_dir)
        if path is None:
            if os.environ.get(DEFAULT_ENV_VARS['driver']):
                return cls._from_default_env(env)
            raise ConfigError("could not find dbconf.yaml")

        return cls.from_file(path, env)

    @classmethod
    def from_file(cls, path: Union[str, Path], env: str = DEFAULT_ENV) -> "DBConf":
        """Load one environment section from a dbconf file."""
        path = Path(path)
        config = _load_yaml_file(path)

        if env not in config:
            raise ConfigError(f"environment '{env}' not found in {path}")

        section = deepcopy(config[env])
        if not isinstance(section, dict):
            raise ConfigError(f"environment '{env}' in {path} must be a mapping")

        for key, env_var in ENV_OVERRIDES.items():
            env_value = os.environ.get(env_var)
            if env_value:
                section[key] = env_value
                logger.info(f"Applied environment override for {env}.{key}")

        try:
            validate(section, ENV_SCHEMA)
        except ValidationError as e:
            raise ConfigError(
                f"invalid configuration for '{env}' in {path}: {e.message} "
                f"(at {'.'.join(str(p) for p in e.path) or env})"
            ) from e

        migrations_dir = Path(section.get('migrationsDir', 'migrations'))
        if not migrations_dir.is_absolute():
            migrations_dir = path.parent / migrations_dir

        conf = cls(
            migrations_dir=migrations_dir,
            env=env,
            driver=expand_env(section['driver']),
            open_str=expand_env(section['open']),
            dialect=section.get('dialect'),
            table=section.get('table', DEFAULT_TABLE),
        )
        logger.debug(f"Loaded configuration for '{env}' from {path}")
        return conf

    @classmethod
    def _from_default_env(cls, env: str) -> "DBConf":
        values = {key: os.environ.get(var) for key, var in DEFAULT_ENV_VARS.items()}
        return cls(
            migrations_dir=values['migrationsDir'] or 'migrations',
            env=env,
            driver=values['driver'],
            open_str=values['open'] or '',
            dialect=values['dialect'] or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the settings, used to hand them to a child process."""
        return {
            'migrationsDir': self.migrations_dir,
            'env': self.env,
            'driver': self.driver,
            'open': self.open_str,
            'dialect': self.dialect_name,
            'table': self.table,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DBConf":
        """Rebuild settings produced by to_dict()."""
        return cls(
            migrations_dir=data['migrationsDir'],
            env=data['env'],
            driver=data['driver'],
            open_str=data['open'],
            dialect=data.get('dialect'),
            table=data.get('table', DEFAULT_TABLE),
        )

    def get_url(self) -> str:
        """
        Build the SQLAlchemy URL for this configuration.

        Full URLs are used as-is; bare paths (sqlite3, duckdb) and bare
        host specs (mysql) are completed with the driver's scheme.
        """
        if '://' in self.open_str:
            if self.open_str.startswith('postgres://'):
                return 'postgresql+psycopg2://' + self.open_str[len('postgres://'):]
            return self.open_str

        scheme = DRIVERS.get(self.driver, (None, self.driver))[1]
        if self.driver in ('sqlite3', 'duckdb'):
            if self.open_str in ('', ':memory:'):
                return f"{scheme}:///:memory:"
            return f"{scheme}:///{self.open_str}"
        if self.driver in ('postgres', 'redshift'):
            # libpq key=value strings are passed through connect_args
            return f"{scheme}://"
        return f"{scheme}://{self.open_str}"

    def get_engine(self, **engine_args) -> Engine:
        """
        Create SQLAlchemy engine for this configuration

        Args:
            **engine_args: Extra create_engine arguments

        Returns:
            SQLAlchemy Engine instance
        """
        url = self.get_url()
        engine_args.setdefault('pool_pre_ping', True)
        engine_args.setdefault('echo', False)

        if self.driver in ('postgres', 'redshift') and '://' not in self.open_str and self.open_str:
            engine_args.setdefault('connect_args', {})['dsn'] = self.open_str

        logger.info(f"Creating {self.driver} engine: {make_url(url).render_as_string(hide_password=True)}")
        engine = create_engine(url, **engine_args)

        if engine.dialect.name == 'sqlite':
            _enable_sqlite_transactional_ddl(engine)

        return engine

    def __repr__(self) -> str:
        return (f"DBConf(env='{self.env}', driver='{self.driver}', dialect='{self.dialect_name}', "
                f"migrations_dir='{self.migrations_dir}')")


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Safely load a YAML config file."""
    try:
        with open(path, 'r') as f:
            # Tab indentation is accepted in dbconf files; tabs inside values are kept
            text = _LEADING_INDENT.sub(lambda m: m.group(0).expandtabs(4), f.read())
            config = yaml.safe_load(text)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load config file {path}: {e}")
        raise ConfigError(f"cannot load {path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Config file must contain a dictionary, got {type(config).__name__}")

    return config


def _enable_sqlite_transactional_ddl(engine: Engine) -> None:
    """Make pysqlite run DDL inside the engine's transactions."""

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")
