"""Start, stop and look up focus sessions"""
import logging
from typing import Optional

from focus_drift.models.activity import now_ms
from focus_drift.models.focus_session import FocusSession, SOURCE_CALENDAR, SOURCE_MANUAL
from focus_drift.models.tags import DEFAULT_DURATION_MINUTES
from focus_drift.services.database import DatabaseManager
from focus_drift.services.errors import NoActiveSessionError, SessionError

logger = logging.getLogger(__name__)

class SessionManager:
    """Owns the one-active-session rule"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def start_session(
        self,
        tag: Optional[str],
        duration_minutes: int = DEFAULT_DURATION_MINUTES,
        source: str = SOURCE_MANUAL,
        custom_tag: Optional[str] = None,
        now: Optional[int] = None,
    ) -> FocusSession:
        """Start a session; a non-blank custom tag takes precedence over ``tag``"""
        declared = custom_tag.strip() if custom_tag and custom_tag.strip() else (tag or "").strip()
        if not declared:
            raise SessionError("Please enter a tag")
        if duration_minutes <= 0:
            raise SessionError(f"Duration must be positive, got {duration_minutes}")
        if source not in (SOURCE_MANUAL, SOURCE_CALENDAR):
            raise SessionError(f"Unknown session source: {source}")

        session = FocusSession(
            tag_declared=declared,
            duration_minutes=duration_minutes,
            started_at=now_ms() if now is None else now,
            source=source,
        )
        return self.db.create_session_if_idle(session)

    def stop_session(self, now: Optional[int] = None) -> FocusSession:
        """End the most recent active session"""
        session = self.current_session()
        if session is None:
            raise NoActiveSessionError("No active session. Start a focus session first")

        ended_at = now_ms() if now is None else now
        stopped = self.db.end_session(session.id, max(ended_at, session.started_at))
        logger.info(
            f"Stopped session {session.id} ({session.tag_declared}) after "
            f"{stopped.elapsed_ms() // 60000} min"
        )
        return stopped

    def current_session(self) -> Optional[FocusSession]:
        """Most recently started active session, if any"""
        active = self.db.get_active_sessions()
        if len(active) > 1:
            logger.warning(f"{len(active)} active sessions found; using the newest")
        return active[0] if active else None
