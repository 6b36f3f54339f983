"""
MySQL ledger dialect
"""

from sqlalchemy import text
from sqlalchemy.engine import Connection
from typing import List

from ..base_dialect import SqlDialect


class MySQLDialect(SqlDialect):
    """MySQL ledger operations"""

    name = 'mysql'

    def create_version_table_sql(self, table: str) -> List[str]:
        return [
            f"""CREATE TABLE {table} (
                id SERIAL NOT NULL,
                version_id BIGINT NOT NULL,
                is_applied BOOLEAN NOT NULL,
                tstamp TIMESTAMP NULL DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY(id)
            )"""
        ]

    def table_exists(self, conn: Connection, table: str) -> bool:
        query = text("""
            SELECT COUNT(*) FROM information_schema.tables
            WHERE table_schema = DATABASE() AND table_name = :table
        """)
        return conn.execute(query, {'table': table}).scalar() > 0
