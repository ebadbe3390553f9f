"""
Configuration constants for the workout-session and quota layer.

Values here are the Python defaults; liftlog.yaml and the user override file
may replace the adjustable ones (see config_loader.py).
"""

from typing import Final

# =============================================================================
# DOCUMENT STORE
# =============================================================================

BATCH_WRITE_LIMIT: Final[int] = 500  # Hard ceiling of operations per batch commit
MIGRATION_CHUNK_SIZE: Final[int] = 490  # Session writes per migration batch

# Multi-tenant root segment: artifacts/{app_id}/users/{uid}/...
DEFAULT_APP_ID: Final[str] = "fitmanual-default"

# =============================================================================
# LOCAL PERSISTENCE
# =============================================================================

# Kept identical to the web client so a pending session can be picked up
PENDING_SESSION_KEY_PREFIX: Final[str] = "myfitt_pending_session"

# =============================================================================
# RATE LIMITS
# =============================================================================

DEFAULT_RATE_LIMITS: Final[dict[str, int]] = {
    "generate_routine": 5,
}
DEV_UNLIMITED_REMAINING: Final[int] = 9999  # Reported when limits are not enforced

# =============================================================================
# ANALYTICS EVENTS
# =============================================================================

EVENT_WORKOUT_STARTED: Final[str] = "workout_started"
EVENT_WORKOUT_COMPLETED: Final[str] = "workout_completed"

# =============================================================================
# USER-FACING MESSAGES
# =============================================================================

MIGRATION_ERROR_MESSAGE: Final[str] = "Error processing historical workouts."
RATE_LIMIT_CHECK_ERROR_MESSAGE: Final[str] = "Could not verify usage limit"
