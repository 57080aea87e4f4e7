"""Client transports."""

from xiaobei.transport.transport import Transport, HTTPTransport, TransportResponse
from xiaobei.transport.errors import (
    TransportError,
    ConnectionError,
    TimeoutError,
    InvalidMessageError,
)

__all__ = [
    "Transport",
    "HTTPTransport",
    "TransportResponse",
    "TransportError",
    "ConnectionError",
    "TimeoutError",
    "InvalidMessageError",
]
