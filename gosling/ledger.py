"""
Version ledger reader and writer.

The ledger table is an append-only event log: every apply writes a row with
is_applied = true, every revert a row with is_applied = false. Nothing is
ever updated or deleted, so the state of the database has to be derived
from the history on every run:

- resolve_current_version() finds the single head version
- resolve_status() finds each migration's own applied flag

The two agree for a well-formed ledger, but neither assumes the other;
a ledger may show migration 3 applied while migration 2 is not.
"""

import logging
from typing import Dict, Iterable, List, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from .dialects import SqlDialect
from .exceptions import LedgerCorrupt, TableDoesNotExist
from .models import Direction, LedgerRecord, MigrationStatus, MigrationUnit

logger = logging.getLogger(__name__)

DEFAULT_TABLE = 'goose_db_version'


def _newest_first(records: List[LedgerRecord]) -> List[LedgerRecord]:
    """Return records ordered by id descending, sorting only when needed."""
    ids = [r.id for r in records]
    if None not in ids and all(a > b for a, b in zip(ids, ids[1:])):
        return records
    logger.debug("Ledger rows were not returned newest-first, sorting by (tstamp, id)")
    return sorted(records, key=lambda r: r.sort_key, reverse=True)


def read_history(engine: Engine, dialect: SqlDialect, table: str = DEFAULT_TABLE) -> List[LedgerRecord]:
    """
    Read the ledger history, newest first.

    Args:
        engine: SQLAlchemy engine
        dialect: Ledger dialect
        table: Ledger table name

    Returns:
        Ledger records, most recent insert first

    Raises:
        TableDoesNotExist: If the ledger table is absent
    """
    with engine.connect() as conn:
        records = dialect.db_version_query(conn, table)
    return _newest_first(records)


def resolve_current_version(history: Iterable[LedgerRecord]) -> int:
    """
    Derive the current version from a newest-first history.

    The first record seen for a version is authoritative for it. The first
    version whose authoritative record says "applied" is the current one;
    versions whose latest event was a revert are skipped from then on.

    Args:
        history: Ledger records, most recent first

    Returns:
        Current version

    Raises:
        LedgerCorrupt: If no applied record exists
    """
    skip = set()

    for record in history:
        if record.version in skip:
            continue
        if record.is_applied:
            return record.version
        skip.add(record.version)

    raise LedgerCorrupt("no applied version found in the ledger; it should hold at least the initial version 0")


def resolve_status(units: Sequence[MigrationUnit], history: Iterable[LedgerRecord]) -> Dict[int, MigrationStatus]:
    """
    Resolve the applied flag of every migration unit.

    For each unit the record with the latest timestamp wins; equal
    timestamps fall back to the insertion id. Units without any record
    are not applied.

    Args:
        units: Discovered migration units
        history: Ledger records in any order

    Returns:
        Mapping of version to resolved status
    """
    latest: Dict[int, LedgerRecord] = {}
    wanted = {u.version for u in units}

    for record in history:
        if record.version not in wanted:
            continue
        current = latest.get(record.version)
        if current is None or record.sort_key > current.sort_key:
            latest[record.version] = record

    status = {}
    for unit in units:
        record = latest.get(unit.version)
        is_applied = record is not None and record.is_applied
        status[unit.version] = MigrationStatus(
            unit=unit,
            is_applied=is_applied,
            applied_at=record.tstamp if is_applied else None,
        )
    return status


def create_version_table(engine: Engine, dialect: SqlDialect, table: str = DEFAULT_TABLE) -> None:
    """
    Create the ledger table and seed it with the initial version 0.

    Both steps run in one transaction.
    """
    with engine.begin() as conn:
        for statement in dialect.create_version_table_sql(table):
            conn.execute(text(statement))
        conn.execute(
            text(dialect.insert_version_sql(table)),
            {'version_id': 0, 'is_applied': True},
        )
    logger.info(f"Created version table {table}")


def ensure_db_version(engine: Engine, dialect: SqlDialect, table: str = DEFAULT_TABLE) -> int:
    """
    Get the current version, creating the ledger table if it is missing.

    Returns:
        Current version, 0 for a fresh database
    """
    try:
        history = read_history(engine, dialect, table)
    except TableDoesNotExist:
        logger.debug(f"🔧 Version table {table} not found, bootstrapping")
        create_version_table(engine, dialect, table)
        return 0

    return resolve_current_version(history)


def finalize_migration(conn: Connection, dialect: SqlDialect, table: str,
                       direction: Direction, version: int) -> None:
    """
    Append the ledger record for a unit inside the caller's transaction.

    Args:
        conn: Connection with an open transaction that holds the unit's effects
        dialect: Ledger dialect
        table: Ledger table name
        direction: Direction the unit was run in
        version: Unit version
    """
    conn.execute(
        text(dialect.insert_version_sql(table)),
        {'version_id': version, 'is_applied': direction.is_applied},
    )
    logger.debug(f"Recorded version {version} as {'applied' if direction.is_applied else 'reverted'}")
