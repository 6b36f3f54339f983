"""
PostgreSQL and Redshift ledger dialects
"""

from sqlalchemy import text
from sqlalchemy.engine import Connection
from typing import List
import logging

from ..base_dialect import SqlDialect

logger = logging.getLogger(__name__)


class PostgresDialect(SqlDialect):
    """PostgreSQL ledger operations"""

    name = 'postgres'

    def create_version_table_sql(self, table: str) -> List[str]:
        return [
            f"""CREATE TABLE {table} (
                id SERIAL NOT NULL,
                version_id BIGINT NOT NULL,
                is_applied BOOLEAN NOT NULL,
                tstamp TIMESTAMP NULL DEFAULT now(),
                PRIMARY KEY(id)
            )"""
        ]

    def table_exists(self, conn: Connection, table: str) -> bool:
        """
        Check the current schema for the ledger table

        Args:
            conn: Open SQLAlchemy connection
            table: Ledger table name
        """
        query = text("""
            SELECT COUNT(*) FROM information_schema.tables
            WHERE table_schema = current_schema() AND table_name = :table
        """)
        return conn.execute(query, {'table': table}).scalar() > 0


class RedshiftDialect(PostgresDialect):
    """Redshift ledger operations.

    Redshift speaks the PostgreSQL wire protocol but has no SERIAL type,
    and its information_schema does not list tables outside the search path
    reliably, so existence is checked through pg_table_def.
    """

    name = 'redshift'

    def create_version_table_sql(self, table: str) -> List[str]:
        return [
            f"""CREATE TABLE {table} (
                id INTEGER IDENTITY(1, 1) NOT NULL,
                version_id BIGINT NOT NULL,
                is_applied BOOLEAN NOT NULL,
                tstamp TIMESTAMP NULL DEFAULT GETDATE(),
                PRIMARY KEY(id)
            )"""
        ]

    def table_exists(self, conn: Connection, table: str) -> bool:
        query = text("SELECT COUNT(*) FROM pg_table_def WHERE tablename = :table")
        return conn.execute(query, {'table': table}).scalar() > 0
