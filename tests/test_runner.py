"""
End-to-end tests for the migration runner against embedded databases
"""

from unittest.mock import patch

import pytest
from sqlalchemy import inspect

from gosling.exceptions import MigrationFailed, NoPreviousVersion
from gosling.models import Direction, RunState
from gosling.runner import MigrationRunner, run_migrations, run_migrations_on_db

SETUP_UP = "CREATE TABLE t(v VARCHAR(20));"
SETUP_DOWN = "DROP TABLE t;"
INSERT_UP = "INSERT INTO t(v) VALUES('a');"
INSERT_DOWN = "DELETE FROM t WHERE v = 'a';"


def rows(engine):
    with engine.connect() as conn:
        return [r[0] for r in conn.exec_driver_sql("SELECT v FROM t ORDER BY v")]


def has_table(engine, name):
    return inspect(engine).has_table(name)


def applied_versions(runner):
    return [entry.unit.version for entry in runner.get_status() if entry.is_applied]


@pytest.fixture
def example(write_migration):
    """The two-step example: create a table, then insert a row."""
    write_migration("1_setup.sql", SETUP_UP, SETUP_DOWN)
    write_migration("2_ins.sql", INSERT_UP, INSERT_DOWN)


@pytest.fixture
def runner(db_conf):
    with MigrationRunner(db_conf) as runner:
        yield runner


class TestMigrateUp:
    """Test applying migrations"""

    def test_example_to_latest(self, example, runner):
        """Test that running to version 2 creates the table with one row"""
        result = runner.run_migrations(2)

        assert result.succeeded
        assert result.plan.direction == Direction.UP
        assert [u.name for u in result.applied] == ["1_setup.sql", "2_ins.sql"]
        assert rows(runner.engine) == ['a']
        assert runner.get_current_version() == 2
        assert runner.state == RunState.DONE

    def test_partial_target(self, example, runner):
        """Test that a lower target stops early"""
        runner.run_migrations(1)

        assert runner.get_current_version() == 1
        assert rows(runner.engine) == []

    def test_migrate_up_uses_most_recent(self, example, runner):
        """Test that migrate_up targets the newest file on disk"""
        runner.migrate_up()
        assert runner.get_current_version() == 2

    def test_idempotent(self, example, runner):
        """Test that a second run with the same target has nothing to do"""
        runner.run_migrations(2)
        result = runner.run_migrations(2)

        assert result.succeeded
        assert result.plan.is_empty
        assert result.applied == ()
        assert rows(runner.engine) == ['a']

    def test_ledger_bootstrap(self, example, runner):
        """Test that a fresh database gets a ledger at version 0"""
        assert not has_table(runner.engine, runner.conf.table)
        assert runner.get_current_version() == 0
        assert has_table(runner.engine, runner.conf.table)

    def test_status(self, example, runner):
        """Test the status listing before and after a run"""
        assert [e.is_applied for e in runner.get_status()] == [False, False]

        runner.run_migrations(1)
        status = runner.get_status()

        assert [e.unit.name for e in status] == ["1_setup.sql", "2_ins.sql"]
        assert status[0].is_applied and status[0].applied_at is not None
        assert not status[1].is_applied


class TestMigrateDown:
    """Test reverting migrations"""

    def test_down_to_zero(self, example, runner):
        """Test that running back to 0 drops the table"""
        runner.run_migrations(2)
        result = runner.run_migrations(0)

        assert result.plan.direction == Direction.DOWN
        assert [u.version for u in result.applied] == [2, 1]
        assert not has_table(runner.engine, 't')
        assert runner.get_current_version() == 0

    def test_up_down_up(self, example, runner):
        """Test that a round trip reproduces the single-run result"""
        runner.run_migrations(2)
        runner.run_migrations(0)
        runner.run_migrations(2)

        assert rows(runner.engine) == ['a']
        assert runner.get_current_version() == 2
        assert applied_versions(runner) == [1, 2]

    def test_migrate_down_one_step(self, example, runner):
        """Test rolling back one version at a time"""
        runner.migrate_up()

        runner.migrate_down()
        assert runner.get_current_version() == 1
        assert rows(runner.engine) == []

        runner.migrate_down()
        assert runner.get_current_version() == 0
        assert not has_table(runner.engine, 't')

    def test_migrate_down_at_zero(self, example, runner):
        """Test that nothing precedes an empty database"""
        with pytest.raises(NoPreviousVersion):
            runner.migrate_down()

    def test_redo(self, example, runner):
        """Test that redo reverts and reapplies the current version"""
        runner.migrate_up()
        runner.redo()

        assert runner.get_current_version() == 2
        assert rows(runner.engine) == ['a']


class TestMissingMiddle:
    """Test migrations that appear after later ones were applied"""

    def test_removed_applied_migration(self, migrations_dir, write_migration, runner):
        """Test that removing an applied migration neither reverts nor reapplies its neighbours"""
        write_migration("1_setup.sql", SETUP_UP, SETUP_DOWN)
        b = write_migration("2_b.sql", "INSERT INTO t(v) VALUES('b');", "DELETE FROM t WHERE v = 'b';")
        write_migration("3_c.sql", "INSERT INTO t(v) VALUES('c');", "DELETE FROM t WHERE v = 'c';")
        runner.run_migrations(3)

        saved = b.read_text()
        b.unlink()
        result = runner.run_migrations(3)

        assert result.plan.is_empty
        assert applied_versions(runner) == [1, 3]
        assert rows(runner.engine) == ['b', 'c']

        b.write_text(saved)
        result = runner.run_migrations(3)

        assert result.plan.is_empty
        assert applied_versions(runner) == [1, 2, 3]
        assert rows(runner.engine) == ['b', 'c']

    def test_reappearing_migration(self, migrations_dir, write_migration, runner):
        """Test that only the reintroduced migration is applied"""
        write_migration("1_setup.sql", SETUP_UP, SETUP_DOWN)
        write_migration("3_c.sql", "INSERT INTO t(v) VALUES('c');", "DELETE FROM t WHERE v = 'c';")

        runner.run_migrations(3)
        assert applied_versions(runner) == [1, 3]

        result = runner.run_migrations(3)
        assert result.plan.is_empty

        write_migration("2_b.sql", "INSERT INTO t(v) VALUES('b');", "DELETE FROM t WHERE v = 'b';")
        result = runner.run_migrations(3)

        assert [u.version for u in result.applied] == [2]
        assert applied_versions(runner) == [1, 2, 3]
        assert rows(runner.engine) == ['b', 'c']


class TestFailures:
    """Test that a failing unit stops the run"""

    @pytest.fixture
    def broken(self, migrations_dir, write_migration):
        write_migration("1_setup.sql", SETUP_UP, SETUP_DOWN)
        bad = write_migration(
            "2_bad.sql",
            "INSERT INTO t(v) VALUES('b');\nINSERT INTO no_such_table(v) VALUES('x');",
            "DELETE FROM t WHERE v = 'b';",
        )
        write_migration("3_more.sql", INSERT_UP, INSERT_DOWN)
        return bad

    def test_stops_at_failing_unit(self, broken, runner):
        """Test that earlier units stay applied and later ones do not run"""
        with pytest.raises(MigrationFailed) as exc_info:
            runner.run_migrations(3)

        assert exc_info.value.version == 2
        assert exc_info.value.source == str(broken)
        assert runner.state == RunState.FAILED
        assert runner.get_current_version() == 1
        assert applied_versions(runner) == [1]

    def test_failing_unit_is_atomic(self, broken, runner):
        """Test that statements before the failing one are rolled back"""
        with pytest.raises(MigrationFailed):
            runner.run_migrations(3)

        assert rows(runner.engine) == []

    def test_resume_after_fix(self, broken, runner):
        """Test that re-running after a fix continues from the failed unit"""
        with pytest.raises(MigrationFailed):
            runner.run_migrations(3)

        broken.write_text("-- +goose Up\nINSERT INTO t(v) VALUES('b');\n\n-- +goose Down\nDELETE FROM t WHERE v = 'b';\n")
        result = runner.run_migrations(3)

        assert [u.version for u in result.applied] == [2, 3]
        assert rows(runner.engine) == ['a', 'b']

    def test_script_without_annotations(self, migrations_dir, runner):
        """Test that an unannotated script fails instead of doing nothing"""
        (migrations_dir / "1_plain.sql").write_text("CREATE TABLE t(v VARCHAR(20));\n")

        with pytest.raises(MigrationFailed) as exc_info:
            runner.run_migrations(1)

        assert exc_info.value.version == 1
        assert not has_table(runner.engine, 't')

    def test_missing_semicolon(self, migrations_dir, runner):
        """Test that an unterminated statement fails and leaves no ledger record"""
        (migrations_dir / "1_setup.sql").write_text(
            "-- +goose Up\nCREATE TABLE t(v VARCHAR(20))\n-- +goose Down\nDROP TABLE t\n"
        )

        with pytest.raises(MigrationFailed, match="Missing a semicolon") as exc_info:
            runner.run_migrations(1)

        assert exc_info.value.version == 1
        assert runner.get_current_version() == 0
        assert applied_versions(runner) == []
        assert not has_table(runner.engine, 't')


class TestEngineOwnership:
    """Test who disposes the engine"""

    def test_caller_engine_left_open(self, example, db_conf):
        """Test that a caller-provided engine is never disposed"""
        engine = db_conf.get_engine()
        try:
            with patch.object(engine, 'dispose') as dispose:
                run_migrations_on_db(db_conf, 2, engine)
                MigrationRunner(db_conf, engine).close()
            dispose.assert_not_called()
            assert rows(engine) == ['a']
        finally:
            engine.dispose()

    def test_owned_engine_disposed(self, example, db_conf):
        """Test that run_migrations disposes the engine it created"""
        result = run_migrations(db_conf, 2)
        assert result.succeeded

        with MigrationRunner(db_conf) as runner:
            assert runner.get_current_version() == 2
