"""
Session manager for Xiaobei Protocol.

Handles session lifecycle:
- CREATE: Grant requested ∩ advertised capabilities on handshake
- LOOKUP: Resolve session by id
- TOUCH: Increment message count and update activity
- LIST: Read-only projection for monitoring

Sessions live as long as the manager; there is no expiry or delete path.
Thread-safe using one lock for the whole mapping.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from xiaobei.core.errors import ValidationError
from xiaobei.core.types import SessionID
from .session import Session
from .errors import NoMatchingCapabilitiesError, SessionNotFoundError

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Owns the live sessions.

    Thread-safe in-memory session store keyed by session_id.
    """

    def __init__(self, advertised_capabilities: Iterable[str]):
        """
        Initialize session manager.

        Args:
            advertised_capabilities: Capability names the catalog advertises
        """
        self._advertised = tuple(advertised_capabilities)
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    @property
    def advertised_capabilities(self) -> tuple:
        return self._advertised

    def create_session(
        self,
        requester_id: str,
        requested_capabilities: Optional[Iterable[str]] = None,
    ) -> Session:
        """
        Create a new session.

        Args:
            requester_id: Free-form caller identifier (handshake "from")
            requested_capabilities: Capabilities asked for; None grants all

        Returns:
            Created Session object

        Raises:
            ValidationError: If requester_id is empty
            NoMatchingCapabilitiesError: If nothing requested is advertised
        """
        if not requester_id:
            raise ValidationError('Missing "from" field')

        if requested_capabilities is None:
            requested = list(self._advertised)
        else:
            requested = list(requested_capabilities)

        granted: List[str] = []
        for name in requested:
            if name in self._advertised and name not in granted:
                granted.append(name)

        if not granted:
            raise NoMatchingCapabilitiesError(requested, self._advertised)

        with self._lock:
            session_id = SessionID.generate().value
            while session_id in self._sessions:
                session_id = SessionID.generate().value

            session = Session(
                session_id=session_id,
                requester_id=requester_id,
                granted_capabilities=tuple(granted),
            )
            self._sessions[session_id] = session

        logger.info(
            "Session %s created for %s with capabilities %s",
            session_id, requester_id, ", ".join(granted),
        )
        return session

    def get_session(self, session_id: str) -> Session:
        """
        Get session by ID.

        Args:
            session_id: Session identifier

        Returns:
            Session object

        Raises:
            SessionNotFoundError: If session does not exist
        """
        session = self.find_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def find_session(self, session_id: Any) -> Optional[Session]:
        """Session by ID, or None. Non-string ids never match."""
        if not session_id or not isinstance(session_id, str):
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def touch(self, session_id: str) -> int:
        """
        Record one dispatched message for a session.

        The read-increment-write happens under the store lock so concurrent
        messages on one session never lose an update.

        Args:
            session_id: Session identifier

        Returns:
            New message count

        Raises:
            SessionNotFoundError: If session does not exist
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            count = session.increment_message_count()

        logger.debug("Session %s message #%d", session_id, count)
        return count

    def get_all_sessions(self) -> List[Session]:
        """
        Get all sessions.

        Returns:
            List of all sessions
        """
        with self._lock:
            return list(self._sessions.values())

    def list_sessions(self) -> dict:
        """Listing projection of all sessions plus a count."""
        with self._lock:
            sessions = [s.to_dict() for s in self._sessions.values()]
        return {
            'active_sessions': len(sessions),
            'sessions': sessions,
        }

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def clear_all(self) -> None:
        """Drop all sessions (service shutdown)."""
        with self._lock:
            self._sessions.clear()
