"""
gosling: database schema migrations driven by an append-only version ledger.

Components:
- discovery: finds `<version>_<name>.sql|.py` scripts in a directory
- ledger: reads and writes the version ledger table
- planner: computes the ordered work-list for a target version
- runner: applies the plan unit by unit
- dialects: per-engine ledger DDL and table detection
- config: dbconf.yml loading and engine creation

Usage:
    from gosling import DBConf, MigrationRunner

    conf = DBConf.load('db', 'development')
    with MigrationRunner(conf) as runner:
        runner.migrate_up()
"""

__version__ = "1.0.0"

from .config import DBConf, find_db_conf
from .dialects import SqlDialect, dialect_by_name, get_supported_dialects
from .discovery import collect_migrations, get_most_recent_version, get_previous_version, numeric_component
from .exceptions import (
    ConfigError, GoslingError, LedgerCorrupt, MigrationFailed, NoPreviousVersion, TableDoesNotExist
)
from .ledger import (
    create_version_table, ensure_db_version, finalize_migration, read_history,
    resolve_current_version, resolve_status
)
from .models import (
    Direction, LedgerRecord, MigrationKind, MigrationPlan, MigrationStatus, MigrationUnit, RunResult, RunState
)
from .planner import plan_migrations
from .runner import MigrationRunner, run_migrations, run_migrations_on_db
from .templates import create_migration

__all__ = [
    # Configuration
    'DBConf',
    'find_db_conf',

    # Dialects
    'SqlDialect',
    'dialect_by_name',
    'get_supported_dialects',

    # Discovery
    'collect_migrations',
    'get_most_recent_version',
    'get_previous_version',
    'numeric_component',

    # Ledger
    'create_version_table',
    'ensure_db_version',
    'finalize_migration',
    'read_history',
    'resolve_current_version',
    'resolve_status',

    # Planning and running
    'plan_migrations',
    'MigrationRunner',
    'run_migrations',
    'run_migrations_on_db',
    'create_migration',

    # Models
    'Direction',
    'LedgerRecord',
    'MigrationKind',
    'MigrationPlan',
    'MigrationStatus',
    'MigrationUnit',
    'RunResult',
    'RunState',

    # Errors
    'GoslingError',
    'ConfigError',
    'TableDoesNotExist',
    'LedgerCorrupt',
    'MigrationFailed',
    'NoPreviousVersion',
]
