"""
Session-specific error types for Xiaobei Protocol.

Each maps onto a class of the core taxonomy so the transport can pick the
status code without knowing about sessions.
"""

from typing import Iterable

from xiaobei.core.errors import AuthenticationError, ErrorCode, ValidationError


class SessionNotFoundError(AuthenticationError):
    """Session does not exist (or no session id was supplied)."""

    def __init__(self, session_id: str = None):
        """
        Initialize error.

        Args:
            session_id: The requested session ID, if any
        """
        super().__init__(
            "Invalid or missing session_id",
            details={
                "session_id": session_id,
                "hint": "First call POST /agent/handshake to create a session",
            },
        )


class NoMatchingCapabilitiesError(ValidationError):
    """Handshake asked only for capabilities the agent does not advertise."""

    def __init__(self, requested: Iterable[str], advertised: Iterable[str]):
        """
        Initialize error.

        Args:
            requested: Capabilities in the handshake request
            advertised: Capabilities the catalog advertises
        """
        super().__init__(
            "No matching capabilities",
            details={
                "requested": list(requested),
                "available_capabilities": list(advertised),
            },
            code=ErrorCode.NO_MATCHING_CAPABILITIES.value,
        )


class CapabilityNotGrantedError(ValidationError):
    """Capability is not part of the session's grant."""

    def __init__(self, capability: str, granted: Iterable[str]):
        """
        Initialize error.

        Args:
            capability: The requested capability (may be empty)
            granted: The session's granted capabilities
        """
        super().__init__(
            "Invalid capability",
            details={
                "capability": capability,
                "available": list(granted),
            },
            code=ErrorCode.CAPABILITY_NOT_GRANTED.value,
        )
