"""Xiaobei core: identifiers, errors and the capability catalog."""

from xiaobei.core.types import SessionID, RequestID, now_ms, iso_timestamp
from xiaobei.core.errors import (
    ErrorCode,
    ProtocolError,
    ValidationError,
    AuthenticationError,
    PaymentError,
    PaymentRequiredError,
    PaymentInvalidError,
    InternalError,
    CapabilityError,
)
from xiaobei.core.catalog import (
    CapabilityModel,
    AgentCardModel,
    CapabilityCatalog,
)

__all__ = [
    # Types
    "SessionID",
    "RequestID",
    "now_ms",
    "iso_timestamp",
    # Errors
    "ErrorCode",
    "ProtocolError",
    "ValidationError",
    "AuthenticationError",
    "PaymentError",
    "PaymentRequiredError",
    "PaymentInvalidError",
    "InternalError",
    "CapabilityError",
    # Catalog
    "CapabilityModel",
    "AgentCardModel",
    "CapabilityCatalog",
]
