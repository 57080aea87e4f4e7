"""Capability handlers offered by the agent."""

from xiaobei.capabilities.handlers import (
    Handler,
    ChatHandler,
    translate,
    code_review,
    summarize,
    default_handlers,
)

__all__ = [
    "Handler",
    "ChatHandler",
    "translate",
    "code_review",
    "summarize",
    "default_handlers",
]
