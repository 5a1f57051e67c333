"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_HISTORY_LIMIT = 30
DEFAULT_LIST_LIMIT = 500
DEFAULT_REPORT_DAYS = 7
QUERY_BATCH_SIZE = 500

LEAVE_NOTE_PREFIX = "Approved leave: "

RATE_DECIMALS = 2

# Student dashboard status when no record exists for today.
NOT_CHECKED_IN = "not_checked_in"
