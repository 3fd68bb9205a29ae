"""
Constants used across the league roster system.
"""

# Events stay open for sign-up/leave until this long after their start time
EVENT_ACTIVE_WINDOW_HOURS = 4

# Roster lines (forward/defense groupings)
MIN_LINE = 1
MAX_LINE = 5

LEAGUES = ("A", "B", "C", "D")
EVENT_TYPES = ("league", "extra")

# Audit log paging
DEFAULT_AUDIT_LIMIT = 100
MAX_AUDIT_LIMIT = 200

# Calendar export
CALENDAR_EVENT_DURATION_HOURS = 1
CALENDAR_PRODID = "-//rinkleague//EN"
