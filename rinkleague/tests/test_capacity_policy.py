"""
Unit tests for the capacity policy (initial status for a self-service join).
"""

from types import SimpleNamespace

from rinkleague.database.models import RegistrationStatus
from rinkleague.services.capacity_policy import (
    Placement,
    decide_initial_status,
    next_waitlist_position,
    spots_left,
)


def _event(max_players=None, approval_needed=False):
    return SimpleNamespace(max_players=max_players, approval_needed=approval_needed)


class TestDecideInitialStatus:
    """Tests for decide_initial_status."""

    def test_approval_needed_short_circuits_capacity(self):
        placement = decide_initial_status(_event(max_players=2, approval_needed=True), going_count=2)
        assert placement == Placement(RegistrationStatus.REQUESTED, 0)

    def test_approval_needed_with_room(self):
        placement = decide_initial_status(_event(max_players=10, approval_needed=True), going_count=0)
        assert placement.status is RegistrationStatus.REQUESTED

    def test_unlimited_event_always_going(self):
        placement = decide_initial_status(_event(max_players=None), going_count=500)
        assert placement == Placement(RegistrationStatus.GOING, 0)

    def test_under_capacity_is_going(self):
        placement = decide_initial_status(_event(max_players=2), going_count=1, waitlist_tail=7)
        assert placement == Placement(RegistrationStatus.GOING, 0)

    def test_at_capacity_goes_to_waitlist_tail(self):
        placement = decide_initial_status(_event(max_players=2), going_count=2, waitlist_tail=3)
        assert placement == Placement(RegistrationStatus.WAITLIST, 3)

    def test_zero_capacity_waitlists_everyone(self):
        placement = decide_initial_status(_event(max_players=0), going_count=0)
        assert placement == Placement(RegistrationStatus.WAITLIST, 0)


class TestWaitlistHelpers:
    """Tests for waitlist tail and spots left."""

    def test_next_position_empty_waitlist(self):
        assert next_waitlist_position(None) == 0

    def test_next_position_after_gap(self):
        # Gaps are kept; the tail is always one past the highest position
        assert next_waitlist_position(4) == 5

    def test_spots_left_unlimited(self):
        assert spots_left(None, 12) is None

    def test_spots_left_never_negative(self):
        assert spots_left(3, 5) == 0
        assert spots_left(5, 3) == 2
