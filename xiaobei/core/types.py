"""Common identifiers and time helpers used throughout Xiaobei."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import time
import uuid

# HTTP headers shared by the server and its clients
PAYMENT_HEADER = "X-Payment"
REQUEST_ID_HEADER = "X-Request-ID"

@dataclass
class SessionID:
    """Unique session identifier."""
    value: str

    @staticmethod
    def generate() -> "SessionID":
        return SessionID(str(uuid.uuid4()))

@dataclass
class RequestID:
    """Correlation ID for a request."""
    value: str

    @staticmethod
    def generate() -> "RequestID":
        return RequestID(str(uuid.uuid4()))


def now_ms() -> int:
    """Current unix time in milliseconds."""
    return int(time.time() * 1000)


def iso_timestamp(ts: Optional[float] = None) -> str:
    """Render a unix timestamp (seconds) as ISO-8601 UTC with millisecond precision."""
    if ts is None:
        ts = time.time()
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
