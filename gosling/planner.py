"""
Migration planner.

Turns the current version, a target version and the resolved per-unit
status into an ordered work-list. Units are selected by their own status
rather than by their position relative to the current version, so a
migration that was missing on an earlier run and has since reappeared
is picked up by the next UP run.
"""

import logging
from typing import Dict, Optional, Sequence

from .models import Direction, MigrationPlan, MigrationStatus, MigrationUnit

logger = logging.getLogger(__name__)


def select_direction(current: int, target: int) -> Direction:
    """UP when the target is at or above the current version, DOWN otherwise."""
    return Direction.UP if target >= current else Direction.DOWN


def plan_migrations(units: Sequence[MigrationUnit], current: int, target: int,
                    status: Dict[int, MigrationStatus],
                    direction: Optional[Direction] = None) -> MigrationPlan:
    """
    Compute the ordered list of units needed to reach `target`.

    UP runs every unapplied unit at or below the target, ascending.
    DOWN reverts every applied unit at or above the target, descending.

    Args:
        units: Discovered migration units
        current: Current version resolved from the ledger
        target: Requested version
        status: Resolved status per version
        direction: Force a direction instead of deriving it from current/target

    Returns:
        Migration plan, possibly empty
    """
    if direction is None:
        direction = select_direction(current, target)

    def is_applied(unit: MigrationUnit) -> bool:
        entry = status.get(unit.version)
        return entry is not None and entry.is_applied

    if direction == Direction.UP:
        needed = [u for u in units if u.version <= target and not is_applied(u)]
        needed.sort(key=lambda u: u.version)
    else:
        needed = [u for u in units if u.version >= target and is_applied(u)]
        needed.sort(key=lambda u: u.version, reverse=True)

    plan = MigrationPlan(direction=direction, current=current, target=target, units=tuple(needed))
    logger.debug(f"Planned {len(plan)} migrations {direction.value} (current={current}, target={target})")
    return plan
