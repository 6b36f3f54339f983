"""
Generic SQL dialect for the version ledger table
"""

from pydantic import ValidationError
from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from typing import List
import logging

from ..exceptions import LedgerCorrupt, TableDoesNotExist
from ..models import LedgerRecord

logger = logging.getLogger(__name__)


class SqlDialect:
    """Generic SQL ledger operations, using SQL standard identity columns.

    Engine-specific subclasses override the DDL and the table existence
    check; the history query and the insert are shared by all of them.
    """

    name = 'generic'

    def create_version_table_sql(self, table: str) -> List[str]:
        """
        Statements creating the ledger table

        Args:
            table: Ledger table name

        Returns:
            List of DDL statements, executed in order in one transaction
        """
        return [
            f"""CREATE TABLE {table} (
                id BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
                version_id BIGINT NOT NULL,
                is_applied BOOLEAN NOT NULL,
                tstamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )"""
        ]

    def insert_version_sql(self, table: str) -> str:
        """Parameterized insert of one ledger record."""
        return f"INSERT INTO {table} (version_id, is_applied) VALUES (:version_id, :is_applied)"

    def history_sql(self, table: str) -> str:
        """Ledger rows, most recent insert first."""
        return f"SELECT id, version_id, is_applied, tstamp FROM {table} ORDER BY id DESC"

    def table_exists(self, conn: Connection, table: str) -> bool:
        """
        Check if the ledger table exists

        Args:
            conn: Open SQLAlchemy connection
            table: Ledger table name

        Returns:
            True if table exists, False otherwise
        """
        return inspect(conn).has_table(table)

    def db_version_query(self, conn: Connection, table: str) -> List[LedgerRecord]:
        """
        Read the full ledger history, newest first

        Args:
            conn: Open SQLAlchemy connection
            table: Ledger table name

        Returns:
            Ledger records ordered by id descending

        Raises:
            TableDoesNotExist: If the ledger table is absent
            LedgerCorrupt: If a row does not hold a valid ledger record
        """
        if not self.table_exists(conn, table):
            raise TableDoesNotExist(f"table {table} does not exist")

        result = conn.execute(text(self.history_sql(table)))
        records = []
        for row in result:
            try:
                records.append(LedgerRecord(
                    id=row.id,
                    version=row.version_id,
                    is_applied=bool(row.is_applied),
                    tstamp=row.tstamp,
                ))
            except ValidationError as e:
                raise LedgerCorrupt(f"invalid ledger row id={row.id} in {table}: {e}") from e
        logger.debug(f"Read {len(records)} ledger records from {table}")
        return records

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
