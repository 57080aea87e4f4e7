#!/usr/bin/env python
"""
Xiaobei Protocol Example: one agent talking to another in-process

This example demonstrates:
- Discovery via /.well-known/agent.json
- Handshake with a capability request
- A free chat message
- A paid translate call, paid on demand by a payer callback
- A signed envelope around a message
- The session listing

Usage:
    python EXAMPLE_CLIENT.py

The agent app runs in the same process behind httpx.ASGITransport (demo
mode). Against a running server, pass its URL to AgentClient instead.

Requirements:
    - Python 3.9+
    - xiaobei installed: pip install -e .
"""

import asyncio
import logging

import httpx

from xiaobei.client import AgentClient
from xiaobei.config import LOG_FORMAT, load_config
from xiaobei.security import generate_secret, sign, verify
from xiaobei.server import create_app
from xiaobei.service import AgentService
from xiaobei.transport import HTTPTransport

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger("xiaobei.example")


def demo_payer(requirements):
    """Pretend to settle the payment and hand back a proof token."""
    logger.info(
        "  Paying %s to %s over %s",
        requirements["price"], requirements["payTo"], requirements["protocol"],
    )
    return f"demo-{requirements['protocol']}-proof-{requirements['capability']}"


async def run_demo():
    """Run the two-agent demo."""
    logger.info("=" * 70)
    logger.info("Xiaobei Protocol Demo")
    logger.info("=" * 70)

    service = AgentService(load_config().build_catalog())
    app = create_app(service)
    base_url = "http://xiaobei.local"

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=base_url) as http:
        transport = HTTPTransport(base_url, client=http)
        async with AgentClient(base_url, "demo-agent", transport=transport) as client:
            logger.info("[1] DISCOVERY")
            card = await client.discover()
            logger.info("  %s offers: %s", card["name"], ", ".join(card["capabilities"]))

            logger.info("[2] HANDSHAKE")
            accepted = await client.handshake(["chat", "translate"])
            for name, pricing in accepted["pricing"].items():
                logger.info("  %-12s %s", name, pricing["price"])

            logger.info("[3] FREE CHAT")
            reply = await client.send_message("chat", {"message": "Hello from the demo!"})
            logger.info("  %s", reply["response"]["reply"])

            logger.info("[4] PAID TRANSLATE")
            translated = await client.send_message(
                "translate",
                {"text": "Hello", "to": "zh"},
                payer=demo_payer,
            )
            logger.info(
                "  %s (payment: %s)",
                translated["response"]["translated"],
                translated["metadata"]["payment"],
            )

            logger.info("[5] SIGNED ENVELOPE")
            secret = generate_secret()
            envelope = sign({"capability": "chat", "payload": {"message": "signed hi"}}, secret)
            result = verify(envelope.payload, envelope.signature, secret)
            logger.info("  Signature valid: %s", result.valid)

            logger.info("[6] SESSIONS")
            listing = await client.list_sessions()
            for session in listing["sessions"]:
                logger.info(
                    "  %s from=%s messages=%d",
                    session["id"], session["from"], session["messageCount"],
                )

    logger.info("=" * 70)
    logger.info("Demo complete")
    logger.info("=" * 70)


if __name__ == "__main__":
    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        logger.info("Demo interrupted")
    except Exception as e:
        logger.error(f"Demo failed: {e}", exc_info=True)
        raise SystemExit(1)
