"""
Version ledger dialects.

Each supported engine has one dialect class; `dialect_by_name` selects it
from configuration.
"""

from typing import List

from ..exceptions import ConfigError
from .base_dialect import SqlDialect
from .specific import DuckDBDialect, MySQLDialect, PostgresDialect, RedshiftDialect, SQLiteDialect


def dialect_by_name(name: str) -> SqlDialect:
    """
    Select the ledger dialect for a configured name

    Args:
        name: Dialect name ('postgres', 'redshift', 'mysql', 'sqlite3', 'duckdb', 'generic')

    Returns:
        Dialect instance

    Raises:
        ConfigError: If the name is not a supported dialect
    """
    if name in ('postgres', 'postgresql'):
        return PostgresDialect()
    elif name == 'redshift':
        return RedshiftDialect()
    elif name in ('mysql', 'mymysql'):
        return MySQLDialect()
    elif name in ('sqlite3', 'sqlite'):
        return SQLiteDialect()
    elif name == 'duckdb':
        return DuckDBDialect()
    elif name == 'generic':
        return SqlDialect()
    raise ConfigError(f"Unsupported dialect: {name}")


def get_supported_dialects() -> List[str]:
    """
    Get list of supported dialect names

    Returns:
        List of dialect name strings
    """
    return ['postgres', 'redshift', 'mysql', 'sqlite3', 'duckdb', 'generic']


__all__ = [
    'SqlDialect',
    'DuckDBDialect',
    'MySQLDialect',
    'PostgresDialect',
    'RedshiftDialect',
    'SQLiteDialect',
    'dialect_by_name',
    'get_supported_dialects'
]
