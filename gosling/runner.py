"""
Migration runner.

This module drives a migration run end to end:

    Idle -> Resolving -> Planning -> Applying(i) -> ... -> Done
                                         \\-> Failed

Resolving reads the ledger (bootstrapping it on a fresh database),
Planning computes the work-list, Applying runs each unit in its own
transaction and stops at the first failure. Units committed before the
failure stay applied; re-running with the same target resumes from the
failed unit because the plan is derived from the ledger every time.

There is no locking between separate invocations. Two runners against the
same database race; callers that need exclusion must serialize runs
themselves, for example with an advisory lock.
"""

import logging
import time
from typing import List, Optional

from sqlalchemy.engine import Engine

from .code_migration import run_code_migration
from .config import DBConf
from .discovery import collect_migrations, get_most_recent_version, get_previous_version
from .exceptions import MigrationFailed
from .ledger import ensure_db_version, read_history, resolve_status
from .logging_utils import clear_env_context, log_transaction, set_env_context
from .models import (
    Direction, MigrationKind, MigrationPlan, MigrationStatus, MigrationUnit, RunResult, RunState
)
from .planner import plan_migrations
from .sql_migration import run_sql_migration


class MigrationRunner:
    """
    Database migration runner with ledger-based version tracking.

    The runner owns its engine only when it created it; an engine passed
    in by the caller is never disposed.
    """

    def __init__(self, conf: DBConf, engine: Optional[Engine] = None):
        """
        Initialize migration runner.

        Args:
            conf: Database configuration
            engine: Existing engine to run against; created from conf if omitted
        """
        self.conf = conf
        self.logger = logging.getLogger(f'gosling.{self.__class__.__name__.lower()}')
        self._owns_engine = engine is None
        self.engine = engine if engine is not None else conf.get_engine()
        self.state = RunState.IDLE

        set_env_context(conf.env)
        self.logger.debug(f"🔧 MigrationRunner initialized for {conf!r}")

    def discover_migrations(self) -> List[MigrationUnit]:
        """Collect the migration units in the configured directory."""
        return collect_migrations(self.conf.migrations_dir)

    def get_current_version(self) -> int:
        """
        Get the current schema version, creating the ledger table if needed.

        Returns:
            Current version, 0 if nothing has been applied
        """
        return ensure_db_version(self.engine, self.conf.dialect, self.conf.table)

    def get_status(self) -> List[MigrationStatus]:
        """
        Get the resolved state of every migration on disk.

        Returns:
            Status entries sorted by version
        """
        units = self.discover_migrations()
        self.get_current_version()
        history = read_history(self.engine, self.conf.dialect, self.conf.table)
        status = resolve_status(units, history)
        return [status[u.version] for u in units]

    def plan(self, target: int, direction: Optional[Direction] = None) -> MigrationPlan:
        """
        Compute the plan to reach a target version without applying it.

        Args:
            target: Requested version
            direction: Force a direction instead of deriving it

        Returns:
            Migration plan
        """
        self.state = RunState.RESOLVING
        units = self.discover_migrations()
        current = self.get_current_version()
        history = read_history(self.engine, self.conf.dialect, self.conf.table)
        status = resolve_status(units, history)

        self.state = RunState.PLANNING
        return plan_migrations(units, current, target, status, direction)

    def run_migrations(self, target: int, direction: Optional[Direction] = None) -> RunResult:
        """
        Migrate the database to a target version.

        Args:
            target: Requested version
            direction: Force a direction instead of deriving it

        Returns:
            Run result in the Done state

        Raises:
            MigrationFailed: If a unit fails; earlier units stay applied
        """
        plan = self.plan(target, direction)

        if plan.is_empty:
            self.logger.info(f"no migrations to run. current version: {plan.current}, target: {plan.target}")
            self.state = RunState.DONE
            return RunResult(state=self.state, plan=plan)

        self.logger.info(
            f"migrating db environment '{self.conf.env}', current version: {plan.current}, target: {plan.target}"
        )
        return self.apply(plan)

    def apply(self, plan: MigrationPlan) -> RunResult:
        """
        Apply a plan strictly in order, stopping at the first failure.

        Args:
            plan: Plan to execute

        Returns:
            Run result in the Done state

        Raises:
            MigrationFailed: If a unit fails
        """
        applied = []

        for unit in plan.units:
            self.state = RunState.APPLYING
            start_time = time.time()
            try:
                self._apply_unit(unit, plan.direction)
            except MigrationFailed as e:
                self.state = RunState.FAILED
                log_transaction(self.logger, unit.name, False, error=str(e.cause))
                self.logger.debug(f"Migration failure details: {e}", exc_info=True)
                raise

            applied.append(unit)
            log_transaction(self.logger, unit.name, True, duration=time.time() - start_time)

        self.state = RunState.DONE
        return RunResult(state=self.state, plan=plan, applied=tuple(applied))

    def _apply_unit(self, unit: MigrationUnit, direction: Direction) -> None:
        if unit.kind == MigrationKind.SQL:
            run_sql_migration(self.engine, self.conf.dialect, self.conf.table, unit, direction)
        else:
            if self._owns_engine:
                # Pooled connections can hold a file lock the child process needs (DuckDB)
                self.engine.dispose()
            run_code_migration(self.conf, unit, direction)

    def migrate_up(self) -> RunResult:
        """Migrate to the most recent version available on disk."""
        target = get_most_recent_version(self.conf.migrations_dir)
        return self.run_migrations(target)

    def migrate_down(self) -> RunResult:
        """
        Roll back the current version by one step.

        Raises:
            NoPreviousVersion: If there is nothing to roll back to
        """
        current = self.get_current_version()
        previous = get_previous_version(self.conf.migrations_dir, current)
        self.logger.debug(f"Rolling back version {current}, previous version is {previous}")
        return self.run_migrations(current, direction=Direction.DOWN)

    def redo(self) -> RunResult:
        """Roll back the current version and apply it again."""
        current = self.get_current_version()
        self.migrate_down()
        return self.run_migrations(current)

    def close(self) -> None:
        """Dispose the engine if this runner created it and drop the log context"""
        if self._owns_engine:
            self.engine.dispose()
        clear_env_context()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def run_migrations(conf: DBConf, target: int) -> RunResult:
    """
    Migrate the configured database to a target version.

    Opens an engine from conf and disposes it when done.
    """
    with MigrationRunner(conf) as runner:
        return runner.run_migrations(target)


def run_migrations_on_db(conf: DBConf, target: int, engine: Engine) -> RunResult:
    """
    Migrate the database behind a caller-owned engine to a target version.

    The engine is left open for the caller.
    """
    return MigrationRunner(conf, engine).run_migrations(target)
