"""
Database-specific ledger dialects
"""

from .duckdb_dialect import DuckDBDialect
from .mysql_dialect import MySQLDialect
from .postgres_dialect import PostgresDialect, RedshiftDialect
from .sqlite_dialect import SQLiteDialect

__all__ = [
    'DuckDBDialect',
    'MySQLDialect',
    'PostgresDialect',
    'RedshiftDialect',
    'SQLiteDialect'
]
