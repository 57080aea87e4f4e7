"""Message integrity utilities."""

from xiaobei.security.signing import (
    DEFAULT_MAX_AGE_MS,
    SignatureErrorKind,
    SignedEnvelope,
    VerificationResult,
    sign,
    verify,
    generate_secret,
    hash_message,
)

__all__ = [
    "DEFAULT_MAX_AGE_MS",
    "SignatureErrorKind",
    "SignedEnvelope",
    "VerificationResult",
    "sign",
    "verify",
    "generate_secret",
    "hash_message",
]
