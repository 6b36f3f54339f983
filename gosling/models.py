"""
Migration data models.

This module defines Pydantic models for migration units, ledger records
and migration plans, providing type safety and validation for the
resolution and application steps.
"""

import os
from datetime import datetime
from typing import Optional, Tuple
from pydantic import BaseModel, Field, field_validator
from enum import Enum

# Ledger versions are stored as BIGINT
MAX_VERSION = 2**63 - 1


class Direction(str, Enum):
    """Migration direction enumeration."""
    UP = "up"
    DOWN = "down"

    @property
    def is_applied(self) -> bool:
        """Flag recorded in the ledger for a unit run in this direction."""
        return self is Direction.UP


class MigrationKind(str, Enum):
    """Migration script kind enumeration."""
    SQL = "sql"
    CODE = "code"

    @classmethod
    def from_path(cls, path: str) -> "MigrationKind":
        """Derive the kind from a script's extension."""
        ext = os.path.splitext(path)[1]
        if ext == ".sql":
            return cls.SQL
        if ext == ".py":
            return cls.CODE
        raise ValueError(f"not a recognized migration file type: {path}")


class RunState(str, Enum):
    """Migration run state enumeration."""
    IDLE = "idle"
    RESOLVING = "resolving"
    PLANNING = "planning"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


class MigrationUnit(BaseModel):
    """
    A single discovered migration script.

    Units are immutable once discovered; the planner and applicator
    reference them but never modify them.
    """

    version: int = Field(..., gt=0, le=MAX_VERSION, description="Numeric version parsed from the file name")
    source: str = Field(..., description="Path to the .sql or .py script")
    kind: MigrationKind = Field(..., description="Script kind")

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        """Base file name of the script."""
        return os.path.basename(self.source)

    def __str__(self) -> str:
        return self.name


class LedgerRecord(BaseModel):
    """
    One row of the version ledger table.

    Every apply or revert appends a new record; records are never updated.
    """

    id: Optional[int] = Field(None, description="Insertion order identifier")
    version: int = Field(..., ge=0, le=MAX_VERSION, description="Migration version")
    is_applied: bool = Field(..., description="True if this event applied the migration")
    tstamp: Optional[datetime] = Field(None, description="Time the event was recorded")

    model_config = {"frozen": True}

    @field_validator('tstamp', mode='before')
    @classmethod
    def parse_tstamp(cls, v):
        """Accept timestamps returned as text by drivers without native types."""
        if isinstance(v, str):
            return datetime.fromisoformat(v.replace('Z', '+00:00'))
        return v

    @property
    def sort_key(self) -> Tuple[datetime, int]:
        """Recency key: timestamp first, insertion id breaks ties."""
        return (self.tstamp or datetime.min, self.id if self.id is not None else -1)


class MigrationStatus(BaseModel):
    """Resolved state of one migration unit."""

    unit: MigrationUnit
    is_applied: bool = False
    applied_at: Optional[datetime] = None


class MigrationPlan(BaseModel):
    """Ordered work-list computed by the planner."""

    direction: Direction
    current: int
    target: int
    units: Tuple[MigrationUnit, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to do."""
        return len(self.units) == 0

    def __len__(self) -> int:
        return len(self.units)


class RunResult(BaseModel):
    """Outcome of a migration run."""

    state: RunState = RunState.IDLE
    plan: Optional[MigrationPlan] = None
    applied: Tuple[MigrationUnit, ...] = ()

    @property
    def succeeded(self) -> bool:
        """Check if the run reached the Done state."""
        return self.state == RunState.DONE
