"""
Scaffolding for new migration files.
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

VERSION_FORMAT = '%Y%m%d%H%M%S'

SQL_TEMPLATE = """\
-- +goose Up
-- SQL in section 'Up' is executed when this migration is applied


-- +goose Down
-- SQL section 'Down' is executed when this migration is rolled back

"""

PY_TEMPLATE = """\
\"\"\"Migration {version}: {name}\"\"\"


def up(connection):
    \"\"\"Executed when this migration is applied.\"\"\"
    pass


def down(connection):
    \"\"\"Executed when this migration is rolled back.\"\"\"
    pass
"""

TEMPLATES = {
    'sql': SQL_TEMPLATE,
    'py': PY_TEMPLATE,
}


def sanitize_name(name: str) -> str:
    """Make a migration description safe for a file name."""
    sanitized = re.sub(r'[^a-zA-Z0-9_]', '_', name.strip().lower())
    return re.sub(r'_+', '_', sanitized).strip('_')


def create_migration(name: str, migration_type: str, directory: Union[str, Path],
                     now: Optional[datetime] = None) -> Path:
    """
    Create a new migration file.

    Args:
        name: Migration description
        migration_type: 'sql' or 'py'
        directory: Migrations directory, created if missing
        now: Time used for the version number (defaults to now)

    Returns:
        Path to created migration file

    Raises:
        ConfigError: If the type is not supported or the name is empty
    """
    if migration_type not in TEMPLATES:
        raise ConfigError("migration type must be 'sql' or 'py'")

    sanitized = sanitize_name(name)
    if not sanitized:
        raise ConfigError(f"invalid migration name: {name!r}")

    version = (now or datetime.now()).strftime(VERSION_FORMAT)
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    file_path = directory / f"{version}_{sanitized}.{migration_type}"
    if file_path.exists():
        raise ConfigError(f"migration file already exists: {file_path}")

    file_path.write_text(TEMPLATES[migration_type].format(version=version, name=name), encoding='utf-8')

    logger.info(f"Created migration file: {file_path.name}")
    return file_path
