"""
SQLite ledger dialect
"""

from sqlalchemy import text
from sqlalchemy.engine import Connection
from typing import List

from ..base_dialect import SqlDialect


class SQLiteDialect(SqlDialect):
    """SQLite ledger operations"""

    name = 'sqlite3'

    def create_version_table_sql(self, table: str) -> List[str]:
        # datetime('now') has second resolution; recency ties fall back to id
        return [
            f"""CREATE TABLE {table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                version_id INTEGER NOT NULL,
                is_applied INTEGER NOT NULL,
                tstamp TIMESTAMP DEFAULT (datetime('now'))
            )"""
        ]

    def table_exists(self, conn: Connection, table: str) -> bool:
        query = text("SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = :table")
        return conn.execute(query, {'table': table}).scalar() > 0
