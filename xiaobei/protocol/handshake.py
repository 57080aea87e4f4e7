"""
Handshake request parsing and response rendering.

A handshake fixes a session's grant:
    {"from": "agent-b", "capabilities_request": ["chat", "translate"]}
Omitting capabilities_request asks for every advertised capability.
"""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaError

from xiaobei.core.catalog import CapabilityCatalog
from xiaobei.core.errors import ValidationError
from xiaobei.protocol.session import Session


class HandshakeRequest(BaseModel):
    """Handshake request body."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    requester_id: str = Field(alias="from", min_length=1)
    capabilities_request: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("requester_id", mode="before")
    @classmethod
    def scalar_to_text(cls, v):
        # Numbers and booleans are identifiers too; objects and arrays are not.
        if isinstance(v, (int, float, bool)):
            return json.dumps(v)
        return v

    @field_validator("capabilities_request", mode="before")
    @classmethod
    def must_be_array(cls, v):
        if v is not None and not isinstance(v, list):
            raise ValueError("capabilities_request must be an array")
        return v


def _describe_errors(exc) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "body"
        msg = err.get("msg", "invalid")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{loc}: {msg}")
    return "; ".join(parts)


def parse_handshake_request(body: Any) -> HandshakeRequest:
    """
    Validate a handshake body.

    Args:
        body: Parsed JSON body

    Returns:
        HandshakeRequest

    Raises:
        ValidationError: If the body is not an object, "from" is missing or
            not a scalar, or capabilities_request is not an array of strings
    """
    if not isinstance(body, dict):
        raise ValidationError("Handshake body must be a JSON object")
    if not body.get("from"):
        raise ValidationError('Missing "from" field')
    try:
        return HandshakeRequest.model_validate(body)
    except SchemaError as e:
        raise ValidationError(f"Invalid handshake request: {_describe_errors(e)}")


def build_handshake_response(session: Session, catalog: CapabilityCatalog) -> Dict[str, Any]:
    """Accepted handshake response for a freshly created session."""
    return {
        "accepted": True,
        "session_id": session.session_id,
        "agent": catalog.agent_name,
        "capabilities_available": list(session.granted_capabilities),
        "pricing": catalog.pricing(),
        "message": (
            "Session created. Send messages to POST /agent/message "
            f"with session_id: {session.session_id}"
        ),
    }


def build_handshake_rejection(error: ValidationError) -> Dict[str, Any]:
    """Rejected handshake response."""
    body = error.to_dict()
    body["accepted"] = False
    return body
