"""
Session management and authorization for Xiaobei Protocol.

Exports:
- Session: Session data model
- SessionManager: Session lifecycle management
- AuthorizationGate, AuthorizationDecision: Per-message grant checks
- Session errors: All session-specific exceptions
"""

from .session import Session
from .manager import SessionManager
from .authorization import AuthorizationGate, AuthorizationDecision
from .errors import (
    SessionNotFoundError,
    NoMatchingCapabilitiesError,
    CapabilityNotGrantedError,
)

__all__ = [
    # Session data
    'Session',
    # Manager
    'SessionManager',
    # Authorization
    'AuthorizationGate',
    'AuthorizationDecision',
    # Errors
    'SessionNotFoundError',
    'NoMatchingCapabilitiesError',
    'CapabilityNotGrantedError',
]
