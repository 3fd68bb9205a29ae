"""
Capacity policy: where does a self-service joiner land?

Pure functions only. Callers must hold the event's roster lock while reading
the counts they pass in (see registration_state.lock_event).
"""

from typing import NamedTuple, Optional
from rinkleague.database.models import RegistrationStatus


class Placement(NamedTuple):
    status: RegistrationStatus
    position: int


def next_waitlist_position(max_existing_position: Optional[int]) -> int:
    """Tail of the waitlist: one past the highest position, or 0 when empty."""
    return 0 if max_existing_position is None else max_existing_position + 1


def decide_initial_status(event, going_count: int, waitlist_tail: int = 0) -> Placement:
    """
    Decide the initial status for a self-service join.

    Args:
        event: Anything with ``approval_needed`` and ``max_players`` attributes
        going_count: Current number of going registrations for the event
        waitlist_tail: Position a new waitlist entry would take

    Returns:
        Placement(status, position); position is 0 unless waitlisted
    """
    if event.approval_needed:
        # Approval short-circuits capacity
        return Placement(RegistrationStatus.REQUESTED, 0)
    if event.max_players is None:
        return Placement(RegistrationStatus.GOING, 0)
    if going_count < event.max_players:
        return Placement(RegistrationStatus.GOING, 0)
    return Placement(RegistrationStatus.WAITLIST, waitlist_tail)


def spots_left(max_players: Optional[int], going_count: int) -> Optional[int]:
    """Free roster slots, or None for unlimited events."""
    if max_players is None:
        return None
    return max(0, max_players - going_count)
