"""Unit tests for ledger dialects."""

import pytest
from sqlalchemy import create_engine, text

from gosling.dialects import (
    DuckDBDialect, MySQLDialect, PostgresDialect, RedshiftDialect, SQLiteDialect, SqlDialect,
    dialect_by_name, get_supported_dialects
)
from gosling.exceptions import ConfigError, TableDoesNotExist


class TestDialectByName:
    """Test dialect selection."""

    @pytest.mark.parametrize("name,cls", [
        ("postgres", PostgresDialect),
        ("postgresql", PostgresDialect),
        ("redshift", RedshiftDialect),
        ("mysql", MySQLDialect),
        ("mymysql", MySQLDialect),
        ("sqlite3", SQLiteDialect),
        ("sqlite", SQLiteDialect),
        ("duckdb", DuckDBDialect),
        ("generic", SqlDialect),
    ])
    def test_known_names(self, name, cls):
        """Test that every configured name maps to its dialect."""
        assert type(dialect_by_name(name)) is cls

    def test_unknown_name(self):
        """Test that an unknown dialect is a configuration error."""
        with pytest.raises(ConfigError):
            dialect_by_name("oracle")

    def test_supported_names_resolve(self):
        """Test that every advertised dialect can be constructed."""
        for name in get_supported_dialects():
            assert dialect_by_name(name).name in (name, 'generic')


class TestDialectSql:
    """Test the generated ledger statements."""

    @pytest.mark.parametrize("dialect", [
        PostgresDialect(), RedshiftDialect(), MySQLDialect(), SQLiteDialect(), DuckDBDialect(), SqlDialect()
    ])
    def test_statements_use_table_name(self, dialect):
        """Test that every statement targets the configured table."""
        for statement in dialect.create_version_table_sql("my_versions"):
            assert "my_versions" in statement
        assert "INSERT INTO my_versions" in dialect.insert_version_sql("my_versions")
        assert "ORDER BY id DESC" in dialect.history_sql("my_versions")

    def test_redshift_uses_identity(self):
        """Test that Redshift avoids SERIAL."""
        ddl = RedshiftDialect().create_version_table_sql("t")[0]
        assert "IDENTITY(1, 1)" in ddl
        assert "SERIAL" not in ddl

    def test_duckdb_uses_sequence(self):
        """Test that DuckDB ids come from a sequence."""
        statements = DuckDBDialect().create_version_table_sql("t")
        assert statements[0].startswith("CREATE SEQUENCE")
        assert "nextval('t_id_seq')" in statements[1]


class TestDialectsOnEmbeddedEngines:
    """Test table detection and history reads on real embedded databases."""

    @pytest.fixture(params=[
        (SQLiteDialect, "sqlite:///{path}/ledger.db"),
        (DuckDBDialect, "duckdb:///{path}/ledger.duckdb"),
        (SqlDialect, "sqlite:///{path}/generic.db"),
    ])
    def setup(self, request, tmp_path):
        dialect_cls, url = request.param
        engine = create_engine(url.format(path=tmp_path))
        yield dialect_cls(), engine
        engine.dispose()

    def test_missing_table(self, setup):
        """Test that a missing ledger table is detected."""
        dialect, engine = setup
        with engine.connect() as conn:
            assert not dialect.table_exists(conn, "goose_db_version")
            with pytest.raises(TableDoesNotExist):
                dialect.db_version_query(conn, "goose_db_version")

    def test_history_newest_first(self, setup):
        """Test that inserted rows read back newest first."""
        dialect, engine = setup
        if type(dialect) is SqlDialect:
            # SQLite has no GENERATED ... AS IDENTITY; borrow the SQLite DDL
            ddl = SQLiteDialect().create_version_table_sql("goose_db_version")
        else:
            ddl = dialect.create_version_table_sql("goose_db_version")

        with engine.begin() as conn:
            for statement in ddl:
                conn.execute(text(statement))
            for version, applied in ((0, True), (1, True), (1, False)):
                conn.execute(
                    text(dialect.insert_version_sql("goose_db_version")),
                    {'version_id': version, 'is_applied': applied},
                )

        with engine.connect() as conn:
            assert dialect.table_exists(conn, "goose_db_version")
            records = dialect.db_version_query(conn, "goose_db_version")

        assert [(r.version, r.is_applied) for r in records] == [(1, False), (1, True), (0, True)]
        assert records[0].id > records[1].id > records[2].id
