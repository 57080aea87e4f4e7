"""
Payment gate for Xiaobei Protocol messages.

Runs after authorization. Per message:
- free capability            -> PROCEED (status "free"), proof ignored
- paid, no proof             -> PAYMENT_REQUIRED (protocol, price, payTo)
- paid, proof accepted       -> PROCEED (status "verified")
- paid, proof rejected       -> PAYMENT_INVALID

Payment is pay-per-call: a session may be granted a paid capability and
still has to prove payment on every message. Verification is stateless,
so a proof accepted once is accepted again (no consumed-payment ledger).
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from xiaobei.core.catalog import CapabilityModel
from xiaobei.core.errors import PaymentError, PaymentInvalidError, PaymentRequiredError

logger = logging.getLogger(__name__)


class PaymentOutcome(Enum):
    PROCEED = "PROCEED"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    PAYMENT_INVALID = "PAYMENT_INVALID"


class PaymentStatus(Enum):
    """Reported in message metadata."""
    FREE = "free"
    VERIFIED = "verified"


@dataclass(frozen=True)
class VerifiedPayment:
    """Proof accepted by a verifier."""
    token: str
    capability: str
    verified_at: float


@dataclass(frozen=True)
class InvalidPayment:
    """Proof rejected by a verifier."""
    reason: str


class PaymentVerifier(ABC):
    """
    Pluggable payment proof verification.

    Implementations may call out to a settlement backend; the gate only
    cares about the verdict.
    """

    @abstractmethod
    def verify(
        self,
        token: str,
        descriptor: CapabilityModel,
    ) -> Union[VerifiedPayment, InvalidPayment]:
        """
        Verify a payment proof for a capability.

        Args:
            token: Proof token from the request (stripped, non-empty)
            descriptor: Paid capability being invoked

        Returns:
            VerifiedPayment or InvalidPayment
        """
        raise NotImplementedError


class TokenFormatVerifier(PaymentVerifier):
    """
    Format-only verifier.

    Accepts any non-empty token of non-whitespace characters, up to max_length,
    that does not contain the sentinel. Placeholder until a real settlement
    backend is wired in.
    """

    TOKEN_PATTERN = re.compile(r"^\S+$")

    def __init__(
        self,
        sentinel: str = "invalid",
        min_length: int = 1,
        max_length: int = 512,
    ):
        self.sentinel = sentinel.lower()
        self.min_length = min_length
        self.max_length = max_length

    def verify(self, token, descriptor):
        if not self.TOKEN_PATTERN.match(token):
            return InvalidPayment("payment proof must not contain whitespace")
        if not (self.min_length <= len(token) <= self.max_length):
            return InvalidPayment(
                f"payment proof must be {self.min_length}-{self.max_length} characters"
            )
        if self.sentinel in token.lower():
            return InvalidPayment("payment proof rejected")
        return VerifiedPayment(
            token=token,
            capability=descriptor.name,
            verified_at=time.time(),
        )


@dataclass
class PaymentDecision:
    """Result of the payment gate for one message."""
    outcome: PaymentOutcome
    status: Optional[PaymentStatus] = None
    payment: Optional[VerifiedPayment] = None
    error: Optional[PaymentError] = None

    @property
    def proceed(self) -> bool:
        return self.outcome is PaymentOutcome.PROCEED


class PaymentGate:
    """Enforces payment proof for paid capabilities."""

    def __init__(self, verifier: Optional[PaymentVerifier] = None):
        self.verifier = verifier or TokenFormatVerifier()

    def evaluate(
        self,
        descriptor: CapabilityModel,
        proof: Optional[str] = None,
    ) -> PaymentDecision:
        """
        Decide whether a message may proceed.

        Args:
            descriptor: Capability being invoked
            proof: Payment proof token from the request, if any

        Returns:
            PaymentDecision; never raises for a rejection
        """
        if not descriptor.payment_required:
            return PaymentDecision(PaymentOutcome.PROCEED, status=PaymentStatus.FREE)

        token = proof.strip() if isinstance(proof, str) else ""
        if not token:
            return PaymentDecision(
                PaymentOutcome.PAYMENT_REQUIRED,
                error=PaymentRequiredError(
                    capability=descriptor.name,
                    protocol=descriptor.payment_protocol,
                    price=descriptor.price,
                    pay_to=descriptor.pay_to,
                ),
            )

        verdict = self.verifier.verify(token, descriptor)
        if isinstance(verdict, VerifiedPayment):
            logger.debug("Payment verified for %s", descriptor.name)
            return PaymentDecision(
                PaymentOutcome.PROCEED,
                status=PaymentStatus.VERIFIED,
                payment=verdict,
            )

        return PaymentDecision(
            PaymentOutcome.PAYMENT_INVALID,
            error=PaymentInvalidError(descriptor.name, verdict.reason),
        )
