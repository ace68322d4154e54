"""Tuning constants for scoring, layout and live refresh."""

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * 60 * 1000

# Relevance
SKILL_MATCH_BONUS = 100.0
RECENCY_BONUS_MAX = 50.0
RECENCY_DECAY_PER_HOUR = 2.0
NON_SELF_BONUS = 10.0

# Compatibility
SKILL_EQUAL_FIT = 0.5
SKILL_CONTAINS_FIT = 0.3
TIME_FIT_MAX = 0.3
TIME_FIT_FULL_MINUTES = 60
RECENCY_FIT_CLOSE = 0.2
RECENCY_FIT_NEAR = 0.1
RECENCY_CLOSE_MINUTES = 30
RECENCY_NEAR_MINUTES = 120

# Graph
MATCH_THRESHOLD = 0.2
LARGE_GRAPH_WARNING = 500  # all-pairs construction is O(n^2)
LAYOUT_MARGIN = 80.0
LAYOUT_COLUMN_SPACING = 220.0
LAYOUT_ROW_SPACING = 120.0
LAYOUT_ROW_SPACING_STEP = 40.0  # each later row is this much further apart

# Store defaults
MAX_TIMESTAMP_MS = 253_402_300_799_999  # 9999-12-31T23:59:59.999Z
DEFAULT_SPACE_ID = "local-dev"
ASK_TTL_SECONDS = 3600  # 1 hour
OFFER_TTL_SECONDS = 7200  # 2 hours
ASK_DEFAULT_STATUS = "open"
OFFER_DEFAULT_STATUS = "active"

# TTL buckets (upper bounds in minutes of remaining time)
TTL_BUCKETS = (
    ("under_15m", 15),
    ("under_1h", 60),
    ("under_6h", 360),
)
TTL_BUCKET_EXPIRED = "expired"
TTL_BUCKET_OPEN_ENDED = "over_6h"

# Live refresh
REFRESH_INTERVAL_SECONDS = 1.0
