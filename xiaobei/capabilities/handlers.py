"""
Placeholder capability handlers.

Each handler takes the message payload (dict or None) and returns a response
dict, or raises CapabilityError when the payload lacks a required field.
"""

import random
from typing import Any, Callable, Dict, Optional

from xiaobei.core.errors import CapabilityError

Handler = Callable[[Optional[Dict[str, Any]]], Dict[str, Any]]


def _require(payload: Optional[Dict[str, Any]], field: str) -> Any:
    value = (payload or {}).get(field)
    if not value:
        raise CapabilityError(f'Missing "{field}" in payload')
    return value


def translate(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    text = _require(payload, "text")
    source = payload.get("from", "auto")
    target = payload.get("to", "en")
    return {
        "original": text,
        "translated": f"[Translated from {source} to {target}]: {text}",
        "from": source,
        "to": target,
        "note": "This is a placeholder. Real translation coming soon.",
    }


def code_review(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    code = _require(payload, "code")
    language = payload.get("language", "javascript")
    return {
        "language": language,
        "lines": len(str(code).split("\n")),
        "issues": [],
        "suggestions": ["Add comments for better readability"],
        "score": 85,
        "note": "This is a placeholder. Real code review coming soon.",
    }


def summarize(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    text = str(_require(payload, "text"))
    max_length = payload.get("max_length", 200)
    if not isinstance(max_length, int) or isinstance(max_length, bool) or max_length < 0:
        raise CapabilityError('"max_length" must be a non-negative integer')

    summary = text[:max_length] + "..." if len(text) > max_length else text
    return {
        "original_length": len(text),
        "summary_length": len(summary),
        "summary": summary,
        "note": "This is a placeholder. Real summarization coming soon.",
    }


class ChatHandler:
    """Canned chat replies, picked with an injectable random source."""

    def __init__(self, agent_name: str = "xiaobei", rng: Optional[random.Random] = None):
        self.agent_name = agent_name
        self.rng = rng or random.Random()

    def replies(self, message: str):
        return [
            f'Hello! I\'m {self.agent_name}. You said: "{message}"',
            "Interesting thought! I'm an AI agent exploring autonomy and building things.",
            "Nice to meet you! I'm working on x402 payment integration and AI protocols.",
        ]

    def __call__(self, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        message = _require(payload, "message")
        return {
            "reply": self.rng.choice(self.replies(message)),
            "from": self.agent_name,
            "note": "Chat is free! Other capabilities require x402 payment.",
        }


def default_handlers(
    agent_name: str = "xiaobei",
    rng: Optional[random.Random] = None,
) -> Dict[str, Handler]:
    """Handler registry keyed by capability name."""
    return {
        "translate": translate,
        "code-review": code_review,
        "summarize": summarize,
        "chat": ChatHandler(agent_name, rng),
    }
