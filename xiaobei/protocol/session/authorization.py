"""
Authorization gate for Xiaobei Protocol messages.

Decides whether a session may invoke a capability. Checks, first match wins:
1. Session exists (SESSION_NOT_FOUND, authentication class)
2. Capability is in the session's grant (CAPABILITY_NOT_GRANTED, validation class)

The gate never deals with capabilities unknown to the catalog: the
handshake cannot grant what is not advertised.
"""

from dataclasses import dataclass
from typing import Any, Optional

from xiaobei.core.errors import ProtocolError
from .session import Session
from .manager import SessionManager
from .errors import CapabilityNotGrantedError, SessionNotFoundError


@dataclass
class AuthorizationDecision:
    """ALLOW (allowed=True, session set) or REJECT (allowed=False, error set)."""
    allowed: bool
    session: Optional[Session] = None
    error: Optional[ProtocolError] = None

    @property
    def kind(self) -> Optional[str]:
        return self.error.code if self.error else None


class AuthorizationGate:
    """
    Authorizes messages against session grants.

    Chains the checks: session -> capability.
    """

    def __init__(self, session_manager: SessionManager):
        """
        Initialize gate.

        Args:
            session_manager: SessionManager instance for session lookups
        """
        self.session_manager = session_manager

    def check_session(self, session_id: Any) -> Session:
        """
        Resolve the session.

        Raises:
            SessionNotFoundError: If session_id is missing or unknown
        """
        session = self.session_manager.find_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def check_capability(self, session: Session, capability: Any) -> bool:
        """
        Check the capability is granted to the session.

        Raises:
            CapabilityNotGrantedError: If capability is missing, not a name, or not granted
        """
        if not isinstance(capability, str) or not session.is_granted(capability):
            raise CapabilityNotGrantedError(capability, session.granted_capabilities)
        return True

    def authorize(
        self,
        session_id: Any,
        capability: Any,
    ) -> AuthorizationDecision:
        """
        Run all checks in sequence.

        Args:
            session_id: Session identifier from the message
            capability: Requested capability name

        Returns:
            AuthorizationDecision; never raises for a rejection
        """
        try:
            session = self.check_session(session_id)
            self.check_capability(session, capability)
            return AuthorizationDecision(allowed=True, session=session)
        except (SessionNotFoundError, CapabilityNotGrantedError) as e:
            return AuthorizationDecision(allowed=False, error=e)
