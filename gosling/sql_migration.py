"""
SQL migration scripts.

A SQL migration holds both directions in one file, separated by
annotation comments that external generators must also emit:

    -- +goose Up
    CREATE TABLE post (id int, title text);

    -- +goose Down
    DROP TABLE post;

Statements end at a line whose last token ends with a semicolon. Bodies
that contain semicolons themselves (functions, triggers) are wrapped in
`-- +goose StatementBegin` / `-- +goose StatementEnd`.
"""

import logging
from typing import List

from sqlalchemy.engine import Engine

from .dialects import SqlDialect
from .exceptions import MigrationFailed
from .ledger import finalize_migration
from .models import Direction, MigrationUnit

logger = logging.getLogger(__name__)

SQL_CMD_PREFIX = '-- +goose '


def ends_with_semicolon(line: str) -> bool:
    """Check whether a line ends a statement, ignoring trailing comments."""
    prev = ''
    for word in line.split():
        if word.startswith('--'):
            break
        prev = word
    return prev.endswith(';')


def split_sql_statements(script: str, direction: Direction) -> List[str]:
    """
    Extract the statements for one direction from a SQL migration script.

    Args:
        script: Full text of the migration file
        direction: Section to extract

    Returns:
        Statements in file order

    Raises:
        ValueError: If the script has no Up/Down annotations, an unterminated
            statement or a StatementBegin without StatementEnd
    """
    statements = []
    buf = []
    up_sections = 0
    down_sections = 0
    direction_is_active = False
    ignore_semicolons = False
    statement_ended = False

    for line in script.splitlines():
        if line.startswith(SQL_CMD_PREFIX):
            cmd = line[len(SQL_CMD_PREFIX):].strip()
            if cmd == 'Up':
                direction_is_active = direction == Direction.UP
                up_sections += 1
            elif cmd == 'Down':
                direction_is_active = direction == Direction.DOWN
                down_sections += 1
            elif cmd == 'StatementBegin':
                if direction_is_active:
                    ignore_semicolons = True
            elif cmd == 'StatementEnd':
                if direction_is_active:
                    statement_ended = ignore_semicolons
                    ignore_semicolons = False
            else:
                logger.warning(f"Unknown annotation ignored: {line.strip()}")

            if not statement_ended:
                continue

        if not direction_is_active:
            continue

        if not line.startswith(SQL_CMD_PREFIX):
            buf.append(line)

        if (not ignore_semicolons and ends_with_semicolon(line)) or statement_ended:
            statement_ended = False
            statement = '\n'.join(buf).strip()
            if statement:
                statements.append(statement)
            buf = []

    if ignore_semicolons:
        raise ValueError("saw '-- +goose StatementBegin' with no matching '-- +goose StatementEnd'")

    # Trailing comment lines are not a statement
    remaining = '\n'.join(line for line in buf if not line.strip().startswith('--')).strip()
    if remaining:
        raise ValueError(f"unfinished SQL statement: {remaining!r}. Missing a semicolon?")

    if up_sections == 0 and down_sections == 0:
        raise ValueError("no Up/Down annotations found, so no statements were executed")

    return statements


def run_sql_migration(engine: Engine, dialect: SqlDialect, table: str,
                      unit: MigrationUnit, direction: Direction) -> None:
    """
    Run one direction of a SQL migration and record it in the ledger.

    The statements and the ledger record share a single transaction, so
    either both become visible or neither does.

    Args:
        engine: SQLAlchemy engine
        dialect: Ledger dialect
        table: Ledger table name
        unit: Migration to run
        direction: Section to run

    Raises:
        MigrationFailed: If the script cannot be read or parsed, or a statement fails
    """
    try:
        with open(unit.source, 'r', encoding='utf-8') as f:
            script = f.read()
        statements = split_sql_statements(script, direction)
    except (OSError, ValueError) as e:
        raise MigrationFailed(unit.version, unit.source, e) from e

    logger.debug(f"🔄 Executing {len(statements)} statements for {unit.name} ({direction.value})")

    try:
        with engine.begin() as conn:
            for statement in statements:
                conn.exec_driver_sql(statement)
            finalize_migration(conn, dialect, table, direction, unit.version)
    except Exception as e:
        raise MigrationFailed(unit.version, unit.source, e) from e
