"""Error taxonomy for the gosling migration engine.

All errors raised by the engine derive from GoslingError so callers
(the CLI in particular) can report them uniformly:
- ConfigError: bad configuration or discovery input, raised before any DB work
- TableDoesNotExist: the ledger table is missing, consumed by the bootstrap path
- LedgerCorrupt: a ledger row is invalid or no applied record could be found
- MigrationFailed: a unit failed, the run stopped at that unit
- NoPreviousVersion: a one-step rollback was requested with nothing to go back to
"""

from typing import Optional


class GoslingError(Exception):
    """Base exception for migration engine errors."""
    pass


class ConfigError(GoslingError):
    """Raised for malformed configuration or migration directory contents."""
    pass


class TableDoesNotExist(GoslingError):
    """Raised by a dialect when the version ledger table is absent."""
    pass


class LedgerCorrupt(GoslingError):
    """Raised when a ledger row is invalid or the history holds no applied record."""
    pass


class NoPreviousVersion(GoslingError):
    """Raised when no version precedes the requested one."""
    pass


class MigrationFailed(GoslingError):
    """Raised when a migration unit fails to apply or revert.

    Attributes:
        version: Version of the failing unit
        source: Path of the failing script
        cause: Underlying driver error or process diagnostics
    """

    def __init__(self, version: int, source: Optional[str] = None, cause: Optional[object] = None):
        self.version = version
        self.source = source
        self.cause = cause
        message = f"migration {version} failed"
        if source:
            message += f" ({source})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
