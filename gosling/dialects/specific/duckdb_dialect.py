"""
DuckDB ledger dialect
"""

from sqlalchemy import text
from sqlalchemy.engine import Connection
from typing import List

from ..base_dialect import SqlDialect


class DuckDBDialect(SqlDialect):
    """DuckDB ledger operations"""

    name = 'duckdb'

    def create_version_table_sql(self, table: str) -> List[str]:
        # DuckDB has no SERIAL; ids come from a dedicated sequence
        return [
            f"CREATE SEQUENCE IF NOT EXISTS {table}_id_seq",
            f"""CREATE TABLE {table} (
                id BIGINT PRIMARY KEY DEFAULT nextval('{table}_id_seq'),
                version_id BIGINT NOT NULL,
                is_applied BOOLEAN NOT NULL,
                tstamp TIMESTAMP DEFAULT current_timestamp
            )""",
        ]

    def table_exists(self, conn: Connection, table: str) -> bool:
        query = text("""
            SELECT COUNT(*) FROM information_schema.tables
            WHERE table_schema = current_schema() AND table_name = :table
        """)
        return conn.execute(query, {'table': table}).scalar() > 0
