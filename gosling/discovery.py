"""
Migration discovery.

Scans a migrations directory for scripts named `<version>_<description>.sql`
or `<version>_<description>.py` and turns them into MigrationUnit objects.
Files that do not follow the convention are skipped, so READMEs and helper
modules can live next to the migrations.
"""

import os
import logging
from typing import Iterator, List, Optional, Tuple

from .exceptions import ConfigError, NoPreviousVersion
from .models import MAX_VERSION, MigrationKind, MigrationUnit

logger = logging.getLogger(__name__)

MIGRATION_EXTENSIONS = ('.sql', '.py')


def numeric_component(name: str) -> int:
    """
    Parse the version number from a migration file name.

    Args:
        name: File name or path

    Returns:
        Version number

    Raises:
        ValueError: If the file is not a migration script
        ConfigError: If the version is zero, negative or does not fit in 64 bits
    """
    base = os.path.basename(name)

    if os.path.splitext(base)[1] not in MIGRATION_EXTENSIONS:
        raise ValueError("not a recognized migration file type")

    idx = base.find('_')
    if idx < 0:
        raise ValueError("no separator found")

    prefix = base[:idx]
    try:
        version = int(prefix)
    except ValueError:
        raise ValueError(f"no numeric version in {base}")

    if version <= 0:
        raise ConfigError(f"migration IDs must be greater than zero: {name}")
    if version > MAX_VERSION:
        raise ConfigError(f"migration ID does not fit in a 64-bit integer: {name}")

    return version


def _walk_files(dirpath: str) -> Iterator[str]:
    """Yield every regular file under dirpath in a stable order."""
    if not os.path.isdir(dirpath):
        raise ConfigError(f"migrations directory not found: {dirpath}")

    def on_error(error: OSError) -> None:
        raise ConfigError(f"cannot read migrations directory {dirpath}: {error}")

    for root, dirs, files in os.walk(dirpath, onerror=on_error):
        dirs.sort()
        for filename in sorted(files):
            path = os.path.join(root, filename)
            if os.path.isfile(path):
                yield path


def _versioned_files(dirpath: str) -> Iterator[Tuple[int, str]]:
    for path in _walk_files(dirpath):
        try:
            version = numeric_component(path)
        except ValueError:
            continue
        yield version, path


def collect_migrations(dirpath: str, low: int = 0, high: int = MAX_VERSION) -> List[MigrationUnit]:
    """
    Collect all valid looking migration scripts in a directory.

    Args:
        dirpath: Migrations directory, searched recursively
        low: Smallest version to include
        high: Largest version to include

    Returns:
        Migration units sorted by version

    Raises:
        ConfigError: On duplicate or non-positive versions, or an unreadable directory
    """
    by_version = {}

    for version, path in _versioned_files(dirpath):
        if version in by_version:
            raise ConfigError(
                f"more than one file specifies the migration for version {version} "
                f"({by_version[version].source} and {path})"
            )
        by_version[version] = MigrationUnit(
            version=version,
            source=path,
            kind=MigrationKind.from_path(path),
        )

    units = sorted(
        (u for u in by_version.values() if low <= u.version <= high),
        key=lambda u: u.version,
    )

    logger.debug(f"Discovered {len(units)} migration files in {dirpath}")
    return units


def get_most_recent_version(dirpath: str) -> int:
    """
    Find the most recent version available in a migrations directory.

    Raises:
        ConfigError: If no migration scripts exist
    """
    versions = [version for version, _ in _versioned_files(dirpath)]
    if not versions:
        raise ConfigError(f"no valid version found in {dirpath}")
    return max(versions)


def get_previous_version(dirpath: str, version: int) -> int:
    """
    Find the version immediately preceding `version` on disk.

    Args:
        dirpath: Migrations directory
        version: Version to step back from

    Returns:
        Highest version below `version`, or 0 when `version` exists on disk
        but nothing precedes it

    Raises:
        NoPreviousVersion: If there is no earlier version to go back to
    """
    previous: Optional[int] = None
    saw_given_version = False

    for v, _ in _versioned_files(dirpath):
        if v < version and (previous is None or v > previous):
            previous = v
        if v == version:
            saw_given_version = True

    if previous is None:
        if saw_given_version:
            return 0
        raise NoPreviousVersion(f"no previous version found before {version}")

    return previous
