"""
Async client for Xiaobei agents.

    async with AgentClient("http://localhost:3401", requester_id="me") as client:
        await client.discover()
        await client.handshake(["chat", "translate"])
        reply = await client.send_message("chat", {"message": "hi"})
        paid = await client.send_message(
            "translate", {"text": "hi", "to": "es"}, payer=my_wallet.pay
        )

Retries are the client's job: a PAYMENT_REQUIRED answer is retried once with
the proof returned by `payer`, and an unknown session triggers one
re-handshake with the previously requested capabilities.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from xiaobei.core.errors import ErrorCode
from xiaobei.core.types import PAYMENT_HEADER
from xiaobei.transport import HTTPTransport, Transport, TransportResponse

logger = logging.getLogger(__name__)

# Called with the payment requirements {"protocol", "price", "payTo"} plus the
# capability name; returns a proof token.
Payer = Callable[[Dict[str, Any]], str]


class AgentResponseError(Exception):
    """Agent answered with a non-2xx status."""

    def __init__(self, status: int, body: Dict[str, Any]):
        self.status = status
        self.body = body
        self.error_code = body.get("error_code")
        self.details = body.get("details") or {}
        super().__init__(f"HTTP {status}: {body.get('error', 'request failed')}")


class AgentClient:
    """Talks to one agent through a Transport."""

    def __init__(
        self,
        base_url: str,
        requester_id: str,
        transport: Optional[Transport] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.requester_id = requester_id
        self.transport = transport or HTTPTransport(self.base_url)
        self.timeout = timeout
        self.session_id: Optional[str] = None
        self.capabilities: List[str] = []
        self.agent_info: Optional[Dict[str, Any]] = None
        self._requested: Optional[List[str]] = None

    async def __aenter__(self) -> "AgentClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    async def _call(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> TransportResponse:
        return await self.transport.send(
            method, path, body=body, headers=headers, timeout=self.timeout
        )

    @staticmethod
    def _raise_for_status(response: TransportResponse) -> Dict[str, Any]:
        if not response.ok:
            raise AgentResponseError(response.status, response.body)
        return response.body

    async def discover(self) -> Dict[str, Any]:
        """Fetch the discovery document."""
        self.agent_info = self._raise_for_status(
            await self._call("GET", "/.well-known/agent.json")
        )
        return self.agent_info

    async def handshake(self, capabilities: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Open a session.

        Args:
            capabilities: Capabilities to request; None asks for all

        Returns:
            Handshake response

        Raises:
            AgentResponseError: If the agent rejects the handshake
        """
        body: Dict[str, Any] = {"from": self.requester_id}
        if capabilities is not None:
            body["capabilities_request"] = list(capabilities)

        result = self._raise_for_status(await self._call("POST", "/agent/handshake", body))
        self._requested = None if capabilities is None else list(capabilities)
        self.session_id = result["session_id"]
        self.capabilities = list(result.get("capabilities_available", []))
        logger.info("Session %s opened with %s", self.session_id, ", ".join(self.capabilities))
        return result

    async def send_message(
        self,
        capability: str,
        payload: Optional[Dict[str, Any]] = None,
        payment_proof: Optional[str] = None,
        payer: Optional[Payer] = None,
    ) -> Dict[str, Any]:
        """
        Send one message to the agent.

        Args:
            capability: Capability to invoke
            payload: Handler input
            payment_proof: Proof to attach up front
            payer: Called on PAYMENT_REQUIRED to obtain a proof; retried once

        Returns:
            Message response ({session_id, capability, status, response, metadata})

        Raises:
            AgentResponseError: On any rejection that is not retried
        """
        if self.session_id is None:
            await self.handshake(self._requested)

        response = await self._post_message(capability, payload, payment_proof)

        if response.status == 401:
            logger.info("Session %s unknown to agent, re-handshaking", self.session_id)
            await self.handshake(self._requested)
            response = await self._post_message(capability, payload, payment_proof)

        if (
            response.status == 402
            and response.body.get("error_code") == ErrorCode.PAYMENT_REQUIRED.value
            and payer is not None
        ):
            details = response.body.get("details") or {}
            requirements = dict(details.get("payment") or {})
            requirements["capability"] = capability
            proof = payer(requirements)
            logger.info("Paying %s for %s", requirements.get("price"), capability)
            response = await self._post_message(capability, payload, proof)

        return self._raise_for_status(response)

    async def _post_message(
        self,
        capability: str,
        payload: Optional[Dict[str, Any]],
        payment_proof: Optional[str],
    ) -> TransportResponse:
        headers = {PAYMENT_HEADER: payment_proof} if payment_proof else None
        body = {
            "session_id": self.session_id,
            "capability": capability,
            "payload": payload or {},
        }
        return await self._call("POST", "/agent/message", body, headers)

    async def list_sessions(self) -> Dict[str, Any]:
        return self._raise_for_status(await self._call("GET", "/agent/sessions"))

    async def health(self) -> Dict[str, Any]:
        return self._raise_for_status(await self._call("GET", "/health"))
