"""
Document path convention shared with the web client.

Every per-user document lives under ``artifacts/{app_id}/users/{uid}``;
the application-instance segment keeps tenants apart in one database.
"""

WORKOUT_SESSIONS = "workout_sessions"
RATE_LIMITS = "rate_limits"
APP_DATA = "app_data"


def _segment(value: str, name: str) -> str:
    if not value or "/" in value:
        raise ValueError(f"Invalid {name} for a document path: {value!r}")
    return value


def user_root(app_id: str, uid: str) -> str:
    """Root path of one user's documents."""
    return f"artifacts/{_segment(app_id, 'app_id')}/users/{_segment(uid, 'uid')}"


def workout_sessions_collection(app_id: str, uid: str) -> str:
    return f"{user_root(app_id, uid)}/{WORKOUT_SESSIONS}"


def workout_session_doc(app_id: str, uid: str, session_id: str) -> str:
    return f"{workout_sessions_collection(app_id, uid)}/{_segment(session_id, 'session id')}"


def rate_limit_doc(app_id: str, uid: str, action: str) -> str:
    return f"{user_root(app_id, uid)}/{RATE_LIMITS}/{_segment(action, 'action')}"


def legacy_logs_doc(app_id: str, uid: str) -> str:
    """The pre-migration log document, which also carries ``coachAdvice``."""
    return f"{user_root(app_id, uid)}/{APP_DATA}/logs"


def profile_doc(app_id: str, uid: str) -> str:
    return f"{user_root(app_id, uid)}/{APP_DATA}/profile"
