"""
utils/constants.py

Purpose: Centralized constants

- Collection names
- Cache keys
- Request header names and defaults

(Prevents hardcoding across the codebase)
"""

# ============================================================
# COLLECTIONS
# ============================================================

RESOURCES_COLLECTION = "resources"
TRACKING_EVENTS_COLLECTION = "tracking_events"

# ============================================================
# CACHE KEYS
# ============================================================

STATS_CACHE_PREFIX = "stats:"
GLOBAL_STATS_CACHE_KEY = "stats:global"

# ============================================================
# REQUEST METADATA
# ============================================================

UNKNOWN_VALUE = "Unknown"
USER_AGENT_HEADER = "user-agent"
FORWARDED_FOR_HEADER = "x-forwarded-for"
ADMIN_KEY_HEADER = "X-Admin-Key"

# ============================================================
# STATISTICS
# ============================================================

WEEKLY_WINDOW_DAYS = 7
