"""
Session data model for Xiaobei Protocol.

Represents a session negotiated by a handshake: who asked for it, which
capabilities it was granted, and how many messages it has dispatched.
"""

import time
from dataclasses import dataclass, field
from typing import Tuple

from xiaobei.core.types import iso_timestamp


@dataclass
class Session:
    """
    Represents a live session.

    Fields:
        session_id: uuid4 string (unique, never reused)
        requester_id: The handshake "from" value (not authenticated)
        granted_capabilities: Capabilities fixed at handshake time
        created_at: Timestamp when session was created
        last_active_at: Timestamp of last dispatched message
        message_count: Number of dispatched messages (incremented per message)
    """

    session_id: str
    requester_id: str
    granted_capabilities: Tuple[str, ...]
    created_at: float = field(default_factory=time.time)
    last_active_at: float = None
    message_count: int = 0

    def __post_init__(self):
        self.granted_capabilities = tuple(self.granted_capabilities)
        if self.last_active_at is None:
            self.last_active_at = self.created_at

    def is_granted(self, capability: str) -> bool:
        return capability in self.granted_capabilities

    def increment_message_count(self) -> int:
        """
        Increment message count and update last activity timestamp.

        Not synchronized; SessionManager.touch holds the store lock around it.

        Returns:
            New message count
        """
        self.message_count += 1
        self.last_active_at = time.time()
        return self.message_count

    def to_dict(self) -> dict:
        """
        Listing projection of the session.

        Returns:
            Dictionary with id, from, capabilities, messageCount, created, lastActive
        """
        return {
            'id': self.session_id,
            'from': self.requester_id,
            'capabilities': list(self.granted_capabilities),
            'messageCount': self.message_count,
            'created': iso_timestamp(self.created_at),
            'lastActive': iso_timestamp(self.last_active_at),
        }
