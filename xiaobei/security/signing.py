"""
Message signing for Xiaobei Protocol.

Signs a timestamped envelope around an arbitrary JSON-serializable message
with HMAC-SHA256 over a shared secret.

Verification always recomputes the digest over the exact payload string the
producer emitted, never over a re-serialized object.

Known limitation: there is no nonce, so an envelope can be replayed for as
long as it is younger than max_age_ms.
"""

import hashlib
import hmac
import json
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from xiaobei.core.types import now_ms as _now_ms

DEFAULT_MAX_AGE_MS = 300_000
SECRET_BYTES = 32


class SignatureErrorKind(Enum):
    """Why an envelope failed verification."""
    EXPIRED = "EXPIRED"
    BAD_SIGNATURE = "BAD_SIGNATURE"
    MALFORMED = "MALFORMED"


@dataclass(frozen=True)
class SignedEnvelope:
    """
    Signed, timestamped envelope.

    Fields:
        payload: Exact JSON string that was signed ({"message", "timestamp"})
        timestamp: Producer-side creation time (ms since epoch)
        signature: Hex HMAC-SHA256 of payload
    """
    payload: str
    timestamp: int
    signature: str

    def to_dict(self) -> dict:
        return {
            "payload": self.payload,
            "timestamp": self.timestamp,
            "signature": self.signature,
        }


@dataclass(frozen=True)
class VerificationResult:
    """Tagged verification outcome. message is set only when valid."""
    valid: bool
    message: Any = None
    error: Optional[SignatureErrorKind] = None


def _canonical(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def _digest(payload: str, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def sign(message: Any, secret: str) -> SignedEnvelope:
    """
    Sign a message.

    Args:
        message: Any JSON-serializable value
        secret: Shared HMAC key

    Returns:
        SignedEnvelope whose payload must be transmitted verbatim
    """
    timestamp = _now_ms()
    payload = _canonical({"message": message, "timestamp": timestamp})
    return SignedEnvelope(
        payload=payload,
        timestamp=timestamp,
        signature=_digest(payload, secret),
    )


def verify(
    payload: str,
    signature: str,
    secret: str,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
    now_ms: Optional[int] = None,
) -> VerificationResult:
    """
    Verify a signed payload.

    Checks (in order): payload structure, age, digest.

    Args:
        payload: Exact payload string from the envelope
        signature: Hex signature from the envelope
        secret: Shared HMAC key
        max_age_ms: Maximum accepted age in milliseconds
        now_ms: Evaluation instant (defaults to current time)

    Returns:
        VerificationResult; never raises
    """
    if not isinstance(payload, str):
        return VerificationResult(valid=False, error=SignatureErrorKind.MALFORMED)
    try:
        parsed = json.loads(payload)
    except (ValueError, RecursionError):
        return VerificationResult(valid=False, error=SignatureErrorKind.MALFORMED)

    if not isinstance(parsed, dict) or "message" not in parsed:
        return VerificationResult(valid=False, error=SignatureErrorKind.MALFORMED)

    timestamp = parsed.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        return VerificationResult(valid=False, error=SignatureErrorKind.MALFORMED)

    if now_ms is None:
        now_ms = _now_ms()
    if now_ms - timestamp > max_age_ms:
        return VerificationResult(valid=False, error=SignatureErrorKind.EXPIRED)

    if not isinstance(signature, str) or not hmac.compare_digest(
        _digest(payload, secret).encode("ascii"), signature.encode("utf-8")
    ):
        return VerificationResult(valid=False, error=SignatureErrorKind.BAD_SIGNATURE)

    return VerificationResult(valid=True, message=parsed["message"])


def generate_secret() -> str:
    """Random 32-byte key rendered as 64 hex characters."""
    return secrets.token_hex(SECRET_BYTES)


def hash_message(message: Any) -> str:
    """SHA-256 hex digest of the compact JSON form of a message."""
    return hashlib.sha256(_canonical(message).encode("utf-8")).hexdigest()
