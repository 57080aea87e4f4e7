"""
Xiaobei Protocol error codes and exceptions.

Every per-request failure is a ProtocolError carrying a machine-readable
code, a human message and the HTTP status the transport should answer with.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(Enum):
    """Standard protocol error codes."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NO_MATCHING_CAPABILITIES = "NO_MATCHING_CAPABILITIES"
    CAPABILITY_NOT_GRANTED = "CAPABILITY_NOT_GRANTED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    PAYMENT_INVALID = "PAYMENT_INVALID"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class ProtocolError(Exception):
    """
    Base exception for protocol errors.

    Attributes:
        code: Standard error code
        message: Human-readable error message
        details: Additional error details (dict)
        recoverable: Whether the client can recover (re-handshake, pay, fix input)
        request_id: Correlation ID for logging
        http_status: Recommended HTTP status code
    """

    code: str
    message: str
    details: Dict[str, Any] = None
    recoverable: bool = False
    request_id: Optional[str] = None
    http_status: int = 500

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "error": self.message,
            "error_code": self.code,
            "details": self.details,
            "recoverable": self.recoverable,
            "request_id": self.request_id,
        }


class ValidationError(ProtocolError):
    """Malformed or missing request fields."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = ErrorCode.VALIDATION_ERROR.value,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            details=details or {},
            recoverable=True,
            request_id=request_id,
            http_status=400,
        )


class AuthenticationError(ProtocolError):
    """Unknown or missing session."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            code=ErrorCode.SESSION_NOT_FOUND.value,
            message=message,
            details=details or {},
            recoverable=True,
            request_id=request_id,
            http_status=401,
        )


class PaymentError(ProtocolError):
    """Base for payment gate rejections."""


class PaymentRequiredError(PaymentError):
    """Paid capability called without a payment proof."""

    def __init__(
        self,
        capability: str,
        protocol: str,
        price: str,
        pay_to: str,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            code=ErrorCode.PAYMENT_REQUIRED.value,
            message=f"Payment required for capability '{capability}'",
            details={
                "capability": capability,
                "payment": {
                    "protocol": protocol,
                    "price": price,
                    "payTo": pay_to,
                },
            },
            recoverable=True,
            request_id=request_id,
            http_status=402,
        )


class PaymentInvalidError(PaymentError):
    """Payment proof present but rejected by the verifier."""

    def __init__(
        self,
        capability: str,
        reason: str,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            code=ErrorCode.PAYMENT_INVALID.value,
            message=f"Invalid payment for capability '{capability}': {reason}",
            details={"capability": capability, "reason": reason},
            recoverable=True,
            request_id=request_id,
            http_status=402,
        )


class InternalError(ProtocolError):
    """Misconfiguration or unexpected server failure."""

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(
            code=ErrorCode.INTERNAL_ERROR.value,
            message=message,
            recoverable=False,
            request_id=request_id,
            http_status=500,
        )


class CapabilityError(Exception):
    """
    Semantic error reported by a capability handler.

    Not a protocol failure: the message was authorized, paid and counted,
    the handler just could not produce a result from the payload.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
