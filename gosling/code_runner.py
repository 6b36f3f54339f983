"""
Child process entry point for Python code migrations.

Invoked as `python -m gosling.code_runner --source PATH --version N
--direction up|down` with the serialized DBConf in GOSLING_MIGRATION_CONF.
Exits 0 when the migration function and its ledger record were committed.
"""

import argparse
import importlib.util
import json
import logging
import os
import sys
from types import ModuleType
from typing import List, Optional

from .code_migration import CONF_ENV_VAR
from .config import DBConf
from .ledger import finalize_migration
from .models import Direction

logger = logging.getLogger(__name__)


def load_migration_module(source: str, version: int) -> ModuleType:
    """Import a migration file by path; names starting with digits are not importable otherwise."""
    spec = importlib.util.spec_from_file_location(f"gosling_migration_{version}", source)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot load migration module from {source}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Run one direction of a gosling code migration')
    parser.add_argument('--source', required=True, help='Path to the migration file')
    parser.add_argument('--version', required=True, type=int, help='Migration version')
    parser.add_argument('--direction', required=True, choices=[d.value for d in Direction])
    args = parser.parse_args(argv)

    raw_conf = os.environ.get(CONF_ENV_VAR)
    if not raw_conf:
        print(f"{CONF_ENV_VAR} is not set", file=sys.stderr)
        return 2

    conf = DBConf.from_dict(json.loads(raw_conf))
    direction = Direction(args.direction)

    module = load_migration_module(args.source, args.version)
    func = getattr(module, direction.value, None)
    if not callable(func):
        print(f"{args.source} does not define {direction.value}(connection)", file=sys.stderr)
        return 2

    engine = conf.get_engine()
    try:
        with engine.begin() as conn:
            func(conn)
            finalize_migration(conn, conf.dialect, conf.table, direction, args.version)
    finally:
        engine.dispose()

    return 0


if __name__ == '__main__':
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s - %(message)s')
    sys.exit(main())
