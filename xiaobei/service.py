"""
Agent service: owns the session store and wires gates, dispatcher and handlers.

The session store's lifetime is the service's lifetime: stop() drops every
session. Nothing here is module-level state, so tests can build as many
independent services as they like.
"""

import logging
import random
from typing import Any, Dict, Mapping, Optional

from xiaobei.capabilities import Handler, default_handlers
from xiaobei.core.catalog import CapabilityCatalog
from xiaobei.core.errors import InternalError
from xiaobei.core.types import iso_timestamp
from xiaobei.protocol.dispatcher import DispatchResult, MessageDispatcher, MessageRequest
from xiaobei.protocol.handshake import build_handshake_response, parse_handshake_request
from xiaobei.protocol.payment import PaymentGate, PaymentVerifier
from xiaobei.protocol.session import AuthorizationGate, SessionManager

logger = logging.getLogger(__name__)


class AgentService:
    """Transport-independent agent: handshake, message, listing, discovery."""

    def __init__(
        self,
        catalog: CapabilityCatalog,
        handlers: Optional[Mapping[str, Handler]] = None,
        verifier: Optional[PaymentVerifier] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Build the service.

        Args:
            catalog: Validated capability catalog
            handlers: Handler registry (defaults to the built-in placeholders)
            verifier: Payment verifier (defaults to TokenFormatVerifier)
            rng: Random source for the chat handler

        Raises:
            InternalError: If an advertised capability has no handler
        """
        self.catalog = catalog
        if handlers is None:
            handlers = default_handlers(catalog.agent_name, rng)
        missing = [name for name in catalog.advertised_names() if name not in handlers]
        if missing:
            raise InternalError(f"No handler for advertised capabilities: {', '.join(missing)}")

        self.sessions = SessionManager(catalog.advertised_names())
        self.authorization = AuthorizationGate(self.sessions)
        self.payments = PaymentGate(verifier)
        self.dispatcher = MessageDispatcher(
            catalog,
            self.sessions,
            self.authorization,
            self.payments,
            handlers,
        )
        self.running = False

    def start(self) -> None:
        self.running = True
        logger.info(
            "Agent %s (%s) serving capabilities: %s",
            self.catalog.agent_name,
            self.catalog.protocol,
            ", ".join(self.catalog.advertised_names()),
        )

    def stop(self) -> None:
        dropped = self.sessions.count()
        self.sessions.clear_all()
        self.running = False
        logger.info("Agent %s stopped, dropped %d sessions", self.catalog.agent_name, dropped)

    def handshake(self, body: Any) -> Dict[str, Any]:
        """
        Negotiate a session.

        Raises:
            ValidationError: Bad body, missing "from", non-array
                capabilities_request, or no matching capabilities
        """
        request = parse_handshake_request(body)
        if request.metadata:
            logger.debug("Handshake metadata from %s: %s", request.requester_id, request.metadata)
        session = self.sessions.create_session(
            request.requester_id,
            request.capabilities_request,
        )
        return build_handshake_response(session, self.catalog)

    def message(self, body: Any, payment_proof: Optional[str] = None) -> DispatchResult:
        """Validate and dispatch one message; gate rejections raise ProtocolError."""
        request = MessageRequest.parse(body)
        return self.dispatcher.dispatch_request(request, payment_proof)

    def list_sessions(self) -> Dict[str, Any]:
        return self.sessions.list_sessions()

    def discovery(self, base_url: str) -> Dict[str, Any]:
        return self.catalog.discovery_document(base_url)

    def info(self) -> Dict[str, Any]:
        card = self.catalog.card
        return {
            "name": f"{card.name} protocol",
            "version": card.version,
            "protocol": card.protocol,
            "description": "A simple AI-to-AI communication protocol",
            "endpoints": {
                "discovery": "GET /.well-known/agent.json",
                "handshake": "POST /agent/handshake",
                "message": "POST /agent/message",
                "sessions": "GET /agent/sessions",
            },
            "agent": card.name,
            "capabilities": list(self.catalog.advertised_names()),
            "links": dict(card.links),
        }

    def health(self) -> Dict[str, Any]:
        return {"ok": True, "timestamp": iso_timestamp()}
