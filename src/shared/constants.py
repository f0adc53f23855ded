"""Application-wide constants.

This module centralizes magic numbers and configuration values that are
used across multiple modules. Values that need to be configurable at
runtime should go in config.py instead.
"""

# ===================
# Assessment
# ===================

# Total questions across every catalog section
TOTAL_ASSESSMENT_QUESTIONS = 10

# Terminal marker stored in currentSection once every section is complete
SUMMARY_SECTION = "summary"

# Ranking turns always ask for a full ordering of this many items
RANKING_ITEM_COUNT = 4

# Multiple choice turns offer between these many options
MIN_CHOICE_OPTIONS = 2
MAX_CHOICE_OPTIONS = 4


# ===================
# Session Storage
# ===================

# Redis key layout: {namespace}session:{session_id}
SESSION_KEY_PREFIX = "session:"
SESSION_LOCK_PREFIX = "session:lock:"

# Session document field holding the assessment state
ASSESSMENT_DOCUMENT_FIELD = "assessment"

# Conversation messages kept in the session document
HISTORY_MAX_MESSAGES = 200


# ===================
# Locking
# ===================

# Distributed lock settings
DISTRIBUTED_LOCK_TTL_SECONDS = 60
DISTRIBUTED_LOCK_RETRY_DELAY_SECONDS = 0.1
DISTRIBUTED_LOCK_MAX_RETRIES = 50


# ===================
# Logging
# ===================

# Request ID format validation pattern
REQUEST_ID_PATTERN = r'^[a-zA-Z0-9\-_]{1,64}$'

# Session IDs arrive in a header and end up in Redis keys and logs
SESSION_ID_PATTERN = r'^[a-zA-Z0-9\-_:.]{1,128}$'


# ===================
# Security
# ===================

# CORS preflight cache (in seconds)
CORS_PREFLIGHT_MAX_AGE_SECONDS = 600  # 10 minutes
