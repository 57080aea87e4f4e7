"""Transport-level errors raised by client transports."""

from typing import Optional


class TransportError(Exception):
    """Base class for transport failures."""

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.request_id = request_id


class ConnectionError(TransportError):
    """Failed to reach the agent."""


class TimeoutError(TransportError):
    """Request exceeded its timeout."""


class InvalidMessageError(TransportError):
    """Response body is not a JSON object."""
