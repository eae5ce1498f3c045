# travel_notebook/api/services/session_manager.py
"""Lifecycle of editor sessions, one itinerary store per socket connection."""

import logging
import threading
from datetime import datetime
from typing import Any, Dict, Optional

from travel_notebook.api.services.state_store import ItineraryStore
from travel_notebook.api.services.storage_service import ItineraryRepository

logger = logging.getLogger(__name__)


class EditorSession:
    """A connected browser editor and the store it edits."""

    def __init__(self, sid: str, user_id: Optional[str], store: ItineraryStore):
        self.sid = sid
        self.user_id = user_id
        self.store = store
        self.created_at = datetime.now()
        self.last_activity = datetime.now()
        self.unsubscribe = None  # set when the socket layer subscribes

    def touch(self) -> None:
        self.last_activity = datetime.now()


class SessionManager:
    """Manages the open editor sessions."""

    def __init__(self, repository: Optional[ItineraryRepository] = None):
        self._repository = repository
        self.sessions: Dict[str, EditorSession] = {}

        # Thread safety
        self.lock = threading.Lock()

        logger.info("SessionManager initialized")

    @property
    def repository(self) -> ItineraryRepository:
        if self._repository is None:
            self._repository = ItineraryRepository()
        return self._repository

    def create_session(self, sid: str, user_id: Optional[str]) -> EditorSession:
        """Open a session for a socket, replacing any previous one for that sid.

        Args:
            sid: Socket.IO session id
            user_id: Authenticated user, or None for anonymous editing

        Returns:
            The new EditorSession
        """
        store = ItineraryStore(self.repository, user_id)
        editor_session = EditorSession(sid, user_id, store)
        with self.lock:
            previous = self.sessions.pop(sid, None)
            self.sessions[sid] = editor_session
        if previous:
            self._close(previous, "replaced")

        logger.info(f"Created editor session {sid} (user: {user_id or 'anonymous'})")
        return editor_session

    def get_session(self, sid: str) -> Optional[EditorSession]:
        with self.lock:
            editor_session = self.sessions.get(sid)
        if editor_session:
            editor_session.touch()
        return editor_session

    def remove_session(self, sid: str, reason: str = "manual") -> None:
        with self.lock:
            editor_session = self.sessions.pop(sid, None)
        if editor_session:
            self._close(editor_session, reason)

    @staticmethod
    def _close(editor_session: EditorSession, reason: str) -> None:
        if editor_session.unsubscribe:
            editor_session.unsubscribe()
        editor_session.store.close()
        logger.info(f"Closed editor session {editor_session.sid} ({reason})")

    def close_all(self) -> None:
        with self.lock:
            sessions = list(self.sessions.values())
            self.sessions.clear()
        for editor_session in sessions:
            self._close(editor_session, "shutdown")

    def get_stats(self) -> Dict[str, Any]:
        """Get manager statistics."""
        with self.lock:
            sessions = list(self.sessions.values())
        return {
            "total_sessions": len(sessions),
            "authenticated_sessions": sum(1 for s in sessions if s.user_id),
            "dirty_sessions": sum(1 for s in sessions if s.store.state.is_dirty),
        }


# Global session manager instance
_session_manager = None


def get_session_manager() -> SessionManager:
    """Get the global SessionManager instance."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager()
    return _session_manager


def set_session_manager(manager: Optional[SessionManager]) -> None:
    """Replace the global SessionManager (used by the app factory and tests)."""
    global _session_manager
    _session_manager = manager
