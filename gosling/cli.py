"""
gosling command line interface.

Usage:
    gosling up                         # Migrate to the most recent version
    gosling down                       # Roll back the current version
    gosling redo                       # Roll back and re-apply the current version
    gosling status                     # Show applied / pending migrations
    gosling dbversion                  # Print the current version
    gosling create add_users --type py # Scaffold a new migration
    gosling drivers                    # List supported drivers
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from .config import DBConf, DEFAULT_ENV, DRIVERS
from .dialects import get_supported_dialects
from .exceptions import GoslingError
from .logging_utils import setup_logging
from .runner import MigrationRunner
from .templates import create_migration

console = Console()


def _runner(args) -> MigrationRunner:
    conf = DBConf.load(args.path, args.env)
    return MigrationRunner(conf)


def up_command(args) -> None:
    with _runner(args) as runner:
        if args.target is not None:
            runner.run_migrations(args.target)
        else:
            runner.migrate_up()


def down_command(args) -> None:
    with _runner(args) as runner:
        runner.migrate_down()


def redo_command(args) -> None:
    with _runner(args) as runner:
        runner.redo()


def status_command(args) -> None:
    with _runner(args) as runner:
        entries = runner.get_status()

    table = Table(title=f"[bold blue]gosling status for environment '{args.env}'[/bold blue]",
                  show_header=True, header_style="bold magenta")
    table.add_column("Applied At", style="green", width=26)
    table.add_column("Migration", style="white")

    for entry in entries:
        if entry.is_applied:
            applied_at = entry.applied_at.strftime('%a %b %d %H:%M:%S %Y') if entry.applied_at else "Applied"
        else:
            applied_at = "[yellow]Pending[/yellow]"
        table.add_row(applied_at, entry.unit.name)

    console.print(table)


def dbversion_command(args) -> None:
    with _runner(args) as runner:
        version = runner.get_current_version()
    console.print(f"gosling: dbversion {version}")


def create_command(args) -> None:
    conf = DBConf.load(args.path, args.env)
    path = create_migration(args.name, args.type, conf.migrations_dir, datetime.now())
    console.print(f"gosling: created {path.resolve()}")


def drivers_command(args) -> None:
    table = Table(title="[bold blue]Drivers[/bold blue]", show_header=True, header_style="bold magenta")
    table.add_column("Driver", style="bold yellow")
    table.add_column("Default dialect", style="white")
    for driver, (dialect, _) in sorted(DRIVERS.items()):
        table.add_row(driver, dialect)
    console.print(table)
    console.print(f"[dim]Dialects: {', '.join(get_supported_dialects())}[/dim]")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gosling',
        description="Database schema migrations driven by an append-only version ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('-path', '--path', default='db',
                        help='Directory to start searching for dbconf.yml (default: db)')
    parser.add_argument('--env', default=DEFAULT_ENV,
                        help=f'Which DB environment to use (default: {DEFAULT_ENV})')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('--log-file', help='Also write logs to this file')

    subparsers = parser.add_subparsers(dest='command', metavar='command')
    subparsers.required = True

    up = subparsers.add_parser('up', help='Migrate the DB to the most recent version available')
    up.add_argument('--target', type=int, help='Migrate to this version instead')
    up.set_defaults(func=up_command)

    subparsers.add_parser('down', help='Roll back the version by 1').set_defaults(func=down_command)
    subparsers.add_parser('redo', help='Re-run the latest migration').set_defaults(func=redo_command)
    subparsers.add_parser('status', help='Dump the migration status for the current DB').set_defaults(func=status_command)
    subparsers.add_parser('dbversion', help='Print the current version of the database').set_defaults(func=dbversion_command)

    create = subparsers.add_parser('create', help='Create the scaffolding for a new migration')
    create.add_argument('name', help='Migration name')
    create.add_argument('--type', default='sql', choices=['sql', 'py'], help='Type of migration to create')
    create.set_defaults(func=create_command)

    subparsers.add_parser('drivers', help='List the supported database drivers').set_defaults(func=drivers_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging('DEBUG' if args.verbose else 'INFO', args.log_file)

    try:
        args.func(args)
    except (GoslingError, SQLAlchemyError) as e:
        logging.getLogger('gosling').debug("Command failed", exc_info=True)
        console.print(f"gosling: {e}", style="bold red", markup=False)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
