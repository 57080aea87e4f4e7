"""Xiaobei: a small agent-to-agent protocol with per-capability payments."""

__version__ = "0.1.0"
