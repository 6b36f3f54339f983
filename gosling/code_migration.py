"""
Python code migrations.

A code migration is a `<version>_<name>.py` file defining two functions:

    def up(connection):
        connection.exec_driver_sql("CREATE TABLE post (id int)")

    def down(connection):
        connection.exec_driver_sql("DROP TABLE post")

Each run happens in an isolated interpreter (`python -m gosling.code_runner`)
so a migration cannot leak imports or global state into the runner. The
child opens its own connection from the serialized DBConf, calls the
function inside a transaction and appends the ledger record in that same
transaction. The parent only sees the exit status and captured stderr.
"""

import json
import logging
import os
import subprocess
import sys
from typing import Optional

from .config import DBConf
from .exceptions import MigrationFailed
from .models import Direction, MigrationUnit

logger = logging.getLogger(__name__)

CONF_ENV_VAR = 'GOSLING_MIGRATION_CONF'
RUNNER_MODULE = 'gosling.code_runner'


def build_command(unit: MigrationUnit, direction: Direction) -> list:
    """Command line that runs one direction of a code migration."""
    return [
        sys.executable, '-m', RUNNER_MODULE,
        '--source', unit.source,
        '--version', str(unit.version),
        '--direction', direction.value,
    ]


def _child_env(conf: DBConf) -> dict:
    env = dict(os.environ)
    # Connection settings travel in the environment, not on the command line
    env[CONF_ENV_VAR] = json.dumps(conf.to_dict())

    package_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    existing = env.get('PYTHONPATH')
    env['PYTHONPATH'] = package_root + (os.pathsep + existing if existing else '')
    return env


def run_code_migration(conf: DBConf, unit: MigrationUnit, direction: Direction,
                       timeout: Optional[float] = None) -> None:
    """
    Run one direction of a code migration in a separate process.

    Args:
        conf: DBConf of the target database
        unit: Migration to run
        direction: Function to call ('up' or 'down')
        timeout: Seconds to wait for the process, None waits forever

    Raises:
        MigrationFailed: If the process cannot be started or exits non-zero
    """
    command = build_command(unit, direction)
    logger.debug(f"🔄 Running code migration {unit.name} ({direction.value})")

    try:
        result = subprocess.run(
            command,
            env=_child_env(conf),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise MigrationFailed(unit.version, unit.source, e) from e

    for line in result.stdout.splitlines():
        logger.info(f"[{unit.name}] {line}")

    if result.returncode != 0:
        stderr = result.stderr.strip()
        raise MigrationFailed(
            unit.version,
            unit.source,
            f"process exited with status {result.returncode}" + (f": {stderr}" if stderr else ""),
        )

    logger.debug(f"✅ Code migration {unit.name} finished")
