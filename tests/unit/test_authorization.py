"""
Unit tests for the authorization gate.

Checks run session first, then capability; a rejection never mutates the
session.
"""

import pytest

from xiaobei.core.errors import ErrorCode
from xiaobei.protocol.session import (
    AuthorizationGate,
    CapabilityNotGrantedError,
    SessionManager,
    SessionNotFoundError,
)


@pytest.fixture
def manager():
    return SessionManager(("translate", "code-review", "summarize", "chat"))


@pytest.fixture
def gate(manager):
    return AuthorizationGate(manager)


class TestAuthorizationGate:
    """Test ALLOW/REJECT decisions."""

    def test_allow_granted_capability(self, manager, gate):
        session = manager.create_session("agent-b", ["chat"])
        decision = gate.authorize(session.session_id, "chat")

        assert decision.allowed is True
        assert decision.session is session
        assert decision.error is None
        assert decision.kind is None

    def test_unknown_session_is_authentication_error(self, gate):
        """Nonexistent session never looks like a validation problem."""
        decision = gate.authorize("nonexistent", "chat")

        assert decision.allowed is False
        assert isinstance(decision.error, SessionNotFoundError)
        assert decision.kind == ErrorCode.SESSION_NOT_FOUND.value
        assert decision.error.http_status == 401

    def test_missing_session_id(self, gate):
        decision = gate.authorize(None, "chat")
        assert decision.kind == ErrorCode.SESSION_NOT_FOUND.value

    def test_session_checked_before_capability(self, gate):
        """Both wrong: the session failure wins."""
        decision = gate.authorize("nonexistent", "teleport")
        assert decision.kind == ErrorCode.SESSION_NOT_FOUND.value

    @pytest.mark.parametrize("session_id", [123, ["sid"], {"id": "sid"}])
    def test_non_string_session_id_is_unknown(self, gate, session_id):
        """A session id of the wrong type is an unknown session, not a bad request."""
        decision = gate.authorize(session_id, ["chat"])
        assert decision.kind == ErrorCode.SESSION_NOT_FOUND.value
        assert decision.error.http_status == 401

    def test_ungranted_capability_lists_grant(self, manager, gate):
        """Session granted only chat asks for translate."""
        session = manager.create_session("agent-b", ["chat"])
        decision = gate.authorize(session.session_id, "translate")

        assert decision.allowed is False
        assert isinstance(decision.error, CapabilityNotGrantedError)
        assert decision.error.http_status == 400
        assert decision.error.details["available"] == ["chat"]
        assert decision.error.details["capability"] == "translate"

    def test_missing_capability(self, manager, gate):
        session = manager.create_session("agent-b", ["chat"])
        decision = gate.authorize(session.session_id, None)
        assert decision.kind == ErrorCode.CAPABILITY_NOT_GRANTED.value

    @pytest.mark.parametrize("capability", [["chat"], 1, {"chat": True}])
    def test_non_string_capability_not_granted(self, manager, gate, capability):
        session = manager.create_session("agent-b", ["chat"])
        decision = gate.authorize(session.session_id, capability)
        assert decision.kind == ErrorCode.CAPABILITY_NOT_GRANTED.value

    def test_rejection_does_not_touch_session(self, manager, gate):
        session = manager.create_session("agent-b", ["chat"])
        gate.authorize(session.session_id, "translate")
        assert session.message_count == 0

    def test_check_methods_raise(self, manager, gate):
        session = manager.create_session("agent-b", ["chat"])

        assert gate.check_session(session.session_id) is session
        assert gate.check_capability(session, "chat") is True
        with pytest.raises(SessionNotFoundError):
            gate.check_session("nonexistent")
        with pytest.raises(CapabilityNotGrantedError):
            gate.check_capability(session, "summarize")
