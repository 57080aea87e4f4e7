"""
Interactive terminal chat against a Xiaobei agent.

    xiaobei-chat http://localhost:3401 --name alice
"""

import argparse
import asyncio
import logging
import os
from typing import Optional

from xiaobei.client import AgentClient, AgentResponseError
from xiaobei.config import LOG_FORMAT
from xiaobei.transport import TransportError

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:3401"
EXIT_WORDS = ("exit", "quit")


def normalize_url(url: str) -> str:
    """Add a scheme if missing and drop trailing slashes."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"http://{url}"
    return url.rstrip("/")


def format_reply(result: dict) -> str:
    """Text to show for one message result."""
    response = result.get("response") or {}
    if "error" in response:
        return f"[error] {response['error']}"
    return str(response.get("reply", response))


async def chat(url: str, name: str, client: Optional[AgentClient] = None) -> None:
    client = client or AgentClient(url, requester_id=name)
    async with client:
        card = await client.discover()
        print(f"Connected to {card.get('name')}: {card.get('description', '')}")

        await client.handshake(["chat"])
        print(f"Session {client.session_id}. Type 'exit' to leave.\n")

        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line.lower() in EXIT_WORDS:
                break

            try:
                result = await client.send_message("chat", {"message": line})
            except AgentResponseError as e:
                print(f"[{e.error_code or e.status}] {e}")
                continue
            print(f"{card.get('name', 'agent')}> {format_reply(result)}")

    print("Bye!")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Chat with a xiaobei agent")
    parser.add_argument("url", nargs="?", default=DEFAULT_URL, help=f"Agent URL (default: {DEFAULT_URL})")
    parser.add_argument("--name", default=os.environ.get("USER", "human"), help="Your requester id")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("XIAOBEI_LOG_LEVEL", "WARNING"),
        help="Logging level (default: WARNING)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)

    try:
        asyncio.run(chat(normalize_url(args.url), args.name))
    except TransportError as e:
        logger.error("Cannot reach agent: %s", e.message)
        return 1
    except AgentResponseError as e:
        logger.error("Agent refused: %s", e)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
