"""
Bed status transition table.

``occupied`` appears as a destination so the table documents the full
lifecycle, but only the bed assignment workflow may move a bed there.
"""

from typing import Dict, FrozenSet

from ibms.core.exceptions import InvalidTransitionError
from ibms.domain.beds.models import BedStatus


ALLOWED_TRANSITIONS: Dict[BedStatus, FrozenSet[BedStatus]] = {
    BedStatus.AVAILABLE: frozenset({BedStatus.MAINTENANCE, BedStatus.RESERVED, BedStatus.OCCUPIED}),
    BedStatus.OCCUPIED: frozenset({BedStatus.AVAILABLE, BedStatus.CLEANING}),
    BedStatus.CLEANING: frozenset({BedStatus.AVAILABLE, BedStatus.MAINTENANCE}),
    BedStatus.MAINTENANCE: frozenset({BedStatus.CLEANING, BedStatus.AVAILABLE}),
    BedStatus.RESERVED: frozenset({BedStatus.AVAILABLE, BedStatus.OCCUPIED}),
}


def can_transition(current: BedStatus, requested: BedStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_transition(current: BedStatus, requested: BedStatus) -> None:
    """Raise InvalidTransitionError unless a direct status change is allowed"""
    if requested == BedStatus.OCCUPIED:
        raise InvalidTransitionError(
            f"Cannot change bed status from {current.value} to occupied. Use bed assignment instead.",
            current_status=current.value,
            requested_status=requested.value,
        )

    if not can_transition(current, requested):
        raise InvalidTransitionError(
            f"Cannot change bed status from {current.value} to {requested.value}.",
            current_status=current.value,
            requested_status=requested.value,
        )
