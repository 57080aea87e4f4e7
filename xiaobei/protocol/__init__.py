"""Handshake, authorization, payment and dispatch."""

from xiaobei.protocol.handshake import (
    HandshakeRequest,
    parse_handshake_request,
    build_handshake_response,
    build_handshake_rejection,
)
from xiaobei.protocol.payment import (
    PaymentGate,
    PaymentDecision,
    PaymentOutcome,
    PaymentStatus,
    PaymentVerifier,
    TokenFormatVerifier,
    VerifiedPayment,
    InvalidPayment,
)
from xiaobei.protocol.dispatcher import (
    MessageDispatcher,
    MessageRequest,
    DispatchResult,
)

__all__ = [
    "HandshakeRequest",
    "parse_handshake_request",
    "build_handshake_response",
    "build_handshake_rejection",
    "PaymentGate",
    "PaymentDecision",
    "PaymentOutcome",
    "PaymentStatus",
    "PaymentVerifier",
    "TokenFormatVerifier",
    "VerifiedPayment",
    "InvalidPayment",
    "MessageDispatcher",
    "MessageRequest",
    "DispatchResult",
]
