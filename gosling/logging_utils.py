"""
Logging utilities for gosling.

Provides environment-aware logging using contextvars, so every log line
of a run can be traced back to the dbconf environment it targeted.
"""

import logging
import sys
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from typing import Optional

_env_context: ContextVar[Optional[str]] = ContextVar('gosling_env', default=None)

LOG_FORMAT = '%(asctime)s - [%(env_name)s] - %(name)s - %(levelname)s - %(message)s'


class EnvironmentFilter(logging.Filter):
    """
    Logging filter that adds the active environment name to log records.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        env_name = _env_context.get()
        record.env_name = env_name if env_name else "no_env"
        return True


def set_env_context(env_name: str) -> None:
    """
    Set the current environment name in the logging context.

    Args:
        env_name: Environment name to tag subsequent log messages with
    """
    _env_context.set(env_name)


def clear_env_context() -> None:
    """Clear the current environment name from the logging context."""
    _env_context.set(None)


def get_env_context() -> Optional[str]:
    """Get the current environment name, None if not set."""
    return _env_context.get()


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None,
                  max_log_size_mb: int = 10, backup_count: int = 3) -> logging.Logger:
    """
    Configure the 'gosling' logger.

    Args:
        level: Log level name
        log_file: Optional path of a rotating log file
        max_log_size_mb: Rotation size of the log file
        backup_count: Number of rotated files to keep

    Returns:
        The configured logger
    """
    logger = logging.getLogger('gosling')
    logger.setLevel(getattr(logging, level.upper()))

    # Remove any existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    env_filter = EnvironmentFilter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
    console_handler.addFilter(env_filter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_log_size_mb * 1024 * 1024,
            backupCount=backup_count
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.addFilter(env_filter)
        logger.addHandler(file_handler)

    logger.propagate = False

    # Reduce verbosity of the database layer
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)

    return logger


def log_transaction(logger: logging.Logger, operation: str, success: bool,
                    duration: Optional[float] = None, error: Optional[str] = None) -> None:
    """
    Log the outcome of one migration unit.

    Args:
        logger: Logger instance
        operation: Description of the unit
        success: Whether the unit committed
        duration: Duration in seconds
        error: Error message if the unit failed
    """
    if success:
        message = f"OK    {operation}"
        if duration is not None:
            message += f" ({duration:.3f}s)"
        logger.info(message)
    else:
        message = f"FAIL  {operation}"
        if error:
            message += f": {error}"
        logger.error(message)
