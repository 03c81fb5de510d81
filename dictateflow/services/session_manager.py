"""Session manager: durable history with bounded retention."""

import logging
from typing import List, Optional

from ..exceptions import PersistenceError
from ..models.session import Session
from ..storage.session_store import AbstractSessionStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 20


class SessionManager:
    """Wraps a session store with error translation and eviction.

    Store failures on writes surface as ``PersistenceError``. Eviction keeps
    the ``max_sessions`` newest sessions by ``created_at`` and is
    best-effort: a failed eviction is logged, never raised.
    """

    def __init__(self, store: AbstractSessionStore, max_sessions: int = DEFAULT_MAX_SESSIONS):
        """Initialize session manager.

        Args:
            store: Durable session store
            max_sessions: How many sessions the history retains
        """
        self.store = store
        self.max_sessions = max_sessions
        logger.info(f"SessionManager initialized (retaining {max_sessions} sessions)")

    def save(self, session: Session) -> None:
        """Write the session durably.

        Raises:
            PersistenceError: If the store rejects the write
        """
        try:
            self.store.put(session)
        except Exception as e:
            logger.error(f"Error saving session {session.id}: {e}")
            raise PersistenceError(f"Failed to save session {session.id}: {e}") from e

    def list_sessions(self) -> List[Session]:
        """Return stored sessions, newest first."""
        try:
            return self.store.get_all()
        except Exception as e:
            logger.error(f"Error listing sessions: {e}")
            raise PersistenceError(f"Failed to read sessions: {e}") from e

    def get_session(self, session_id: str) -> Optional[Session]:
        """Return one stored session, or None if it is unknown."""
        try:
            return self.store.get(session_id)
        except Exception as e:
            logger.error(f"Error reading session {session_id}: {e}")
            raise PersistenceError(f"Failed to read session {session_id}: {e}") from e

    def evict_old_sessions(self) -> int:
        """Delete every session beyond the newest ``max_sessions``.

        Returns:
            Number of sessions deleted
        """
        try:
            sessions = self.store.get_all()
        except Exception as e:
            logger.warning(f"Eviction skipped, could not list sessions: {e}")
            return 0

        if len(sessions) <= self.max_sessions:
            return 0

        deleted = 0
        for session in sessions[self.max_sessions:]:
            try:
                self.store.delete(session.id)
                deleted += 1
            except Exception as e:
                logger.warning(f"Could not evict session {session.id}: {e}")

        logger.info(f"Evicted {deleted} old sessions")
        return deleted

    def clear(self) -> None:
        try:
            self.store.clear()
        except Exception as e:
            logger.error(f"Error clearing sessions: {e}")
            raise PersistenceError(f"Failed to clear sessions: {e}") from e
