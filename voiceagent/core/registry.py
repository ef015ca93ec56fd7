"""Process-wide index of live call sessions."""

from __future__ import annotations

import threading
from typing import Any

from voiceagent.core.session import CallSession
from voiceagent.logging_config import get_logger
from voiceagent.observability.metrics import ACTIVE_SESSIONS

logger: Any = get_logger(__name__)


class SessionRegistry:
    """Thread-safe registry of active call sessions.

    Holds a non-owning index used for monitoring and for sweeping sessions
    whose stop event never arrived. Registering does not extend a session's
    lifetime; the connection handler owns it.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, CallSession] = {}
        self._lock = threading.Lock()

    def register(self, session: CallSession) -> None:
        with self._lock:
            if session.session_id in self._sessions:
                return
            self._sessions[session.session_id] = session
            active = len(self._sessions)

        ACTIVE_SESSIONS.set(active)
        logger.info(
            f"Registered session {session.session_id} for call {session.call_id} "
            f"(active: {active})"
        )

    def unregister(self, session_id: str) -> CallSession | None:
        """Remove a session. Unknown or already removed ids are a no-op."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
            active = len(self._sessions)

        if session is None:
            return None

        ACTIVE_SESSIONS.set(active)
        logger.info(f"Unregistered session {session_id} (active: {active})")
        return session

    def get(self, session_id: str) -> CallSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def list(self) -> list[dict[str, Any]]:
        """Summaries of every registered session."""
        with self._lock:
            sessions = list(self._sessions.values())
        return [session.summary() for session in sessions]

    def sessions(self) -> list[CallSession]:
        with self._lock:
            return list(self._sessions.values())

    def sweep(self, max_age_ms: float) -> int:
        """Remove sessions older than max_age_ms.

        Returns:
            Number of sessions removed.
        """
        with self._lock:
            stale = [
                session_id
                for session_id, session in self._sessions.items()
                if session.age_ms > max_age_ms
            ]
            removed = [self._sessions.pop(session_id) for session_id in stale]
            active = len(self._sessions)

        for session in removed:
            session.close()

        if removed:
            ACTIVE_SESSIONS.set(active)
            logger.info(f"Swept {len(removed)} stale sessions older than {max_age_ms:.0f}ms")

        return len(removed)

    def close_all(self) -> int:
        """Close and drop every session (for shutdown)."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for session in sessions:
            session.close()

        ACTIVE_SESSIONS.set(0)
        if sessions:
            logger.info(f"Closed {len(sessions)} sessions on shutdown")
        return len(sessions)

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
