"""Shared fixtures for gosling tests."""

import logging

import pytest
from pathlib import Path

from gosling.config import DBConf


def write_sql_migration(directory: Path, name: str, up: str, down: str) -> Path:
    """Write a SQL migration with Up and Down sections."""
    path = directory / name
    path.write_text(f"-- +goose Up\n{up}\n\n-- +goose Down\n{down}\n", encoding='utf-8')
    return path


@pytest.fixture
def migrations_dir(tmp_path):
    """Empty migrations directory."""
    path = tmp_path / "migrations"
    path.mkdir()
    return path


@pytest.fixture
def sqlite_conf(tmp_path, migrations_dir):
    """Configuration for a file-backed SQLite database."""
    return DBConf(
        migrations_dir=migrations_dir,
        env='test',
        driver='sqlite3',
        open_str=str(tmp_path / "test.db"),
    )


@pytest.fixture(params=['sqlite3', 'duckdb'])
def db_conf(request, tmp_path, migrations_dir):
    """Configuration for each embedded database engine."""
    suffix = 'db' if request.param == 'sqlite3' else 'duckdb'
    return DBConf(
        migrations_dir=migrations_dir,
        env='test',
        driver=request.param,
        open_str=str(tmp_path / f"test.{suffix}"),
    )


@pytest.fixture
def write_migration(migrations_dir):
    """Factory writing SQL migrations into the migrations directory."""
    def _write(name: str, up: str, down: str) -> Path:
        return write_sql_migration(migrations_dir, name, up, down)
    return _write


@pytest.fixture(autouse=True)
def reset_gosling_logger():
    """Undo setup_logging() so caplog sees gosling records in every test."""
    yield
    logger = logging.getLogger('gosling')
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
