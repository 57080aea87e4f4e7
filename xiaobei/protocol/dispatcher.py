"""
Message dispatch for Xiaobei Protocol.

One inbound message goes through:
1. Authorization gate (no mutation on reject)
2. Payload shape check and descriptor lookup
3. Payment gate (no mutation on reject)
4. Session touch (exactly once, before the handler runs)
5. Handler invocation
6. Response envelope

Gate decisions are committed before the handler runs, so a slow or failing
handler cannot corrupt session state.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from xiaobei.capabilities import Handler
from xiaobei.core.catalog import CapabilityCatalog
from xiaobei.core.errors import CapabilityError, InternalError, ValidationError
from xiaobei.core.types import iso_timestamp
from xiaobei.protocol.payment import PaymentGate, PaymentStatus
from xiaobei.protocol.session import AuthorizationGate, SessionManager

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_HANDLER_ERROR = "handler_error"


class MessageRequest(BaseModel):
    """
    Message request body, kept as received.

    Field types are not checked here: the authorization gate resolves
    session_id and capability first, and the payload shape is checked only
    once the message is authorized.
    """
    model_config = ConfigDict(frozen=True)

    session_id: Any = None
    capability: Any = None
    payload: Any = None

    @classmethod
    def parse(cls, body: Any) -> "MessageRequest":
        """
        Accept a message body.

        Raises:
            ValidationError: If the body is not a JSON object
        """
        if not isinstance(body, dict):
            raise ValidationError("Message body must be a JSON object")
        return cls.model_validate(body)


@dataclass
class DispatchResult:
    """
    Outcome of a dispatched message.

    status is "ok" when the handler produced a result and "handler_error"
    when it reported a semantic error; both count as dispatched.
    """
    session_id: str
    capability: str
    response: Dict[str, Any]
    message_number: int
    timestamp: str
    payment: PaymentStatus
    status: str = STATUS_OK

    @property
    def handler_failed(self) -> bool:
        return self.status == STATUS_HANDLER_ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "capability": self.capability,
            "status": self.status,
            "response": self.response,
            "metadata": {
                "message_number": self.message_number,
                "timestamp": self.timestamp,
                "payment": self.payment.value,
            },
        }


class MessageDispatcher:
    """Orchestrates gates, session bookkeeping and capability handlers."""

    def __init__(
        self,
        catalog: CapabilityCatalog,
        sessions: SessionManager,
        authorization: AuthorizationGate,
        payments: PaymentGate,
        handlers: Mapping[str, Handler],
    ):
        self.catalog = catalog
        self.sessions = sessions
        self.authorization = authorization
        self.payments = payments
        self.handlers = dict(handlers)

    def dispatch(
        self,
        session_id: Any,
        capability: Any,
        payload: Any = None,
        payment_proof: Optional[str] = None,
    ) -> DispatchResult:
        """
        Dispatch one message.

        Args:
            session_id: Session identifier
            capability: Capability to invoke
            payload: Handler input
            payment_proof: Out-of-band payment proof token

        Returns:
            DispatchResult

        Raises:
            ValidationError: Authorized message whose payload is not an object
            SessionNotFoundError: Unknown or missing session
            CapabilityNotGrantedError: Capability not in the session grant
            PaymentRequiredError: Paid capability without proof
            PaymentInvalidError: Proof rejected
            InternalError: Granted capability without descriptor or handler
        """
        decision = self.authorization.authorize(session_id, capability)
        if not decision.allowed:
            logger.warning(
                "Message rejected (%s): session=%s capability=%s",
                decision.kind, session_id, capability,
            )
            raise decision.error

        if payload is not None and not isinstance(payload, dict):
            raise ValidationError(
                "Invalid message request: payload must be an object",
                {"field": "payload"},
            )

        descriptor = self.catalog.describe(capability)
        handler = self.handlers.get(capability)
        if descriptor is None or handler is None:
            raise InternalError(f"Capability '{capability}' is granted but not configured")

        payment = self.payments.evaluate(descriptor, payment_proof)
        if not payment.proceed:
            logger.info(
                "Payment gate %s for session=%s capability=%s",
                payment.outcome.value, session_id, capability,
            )
            raise payment.error

        message_number = self.sessions.touch(session_id)

        status = STATUS_OK
        try:
            response = handler(payload)
        except CapabilityError as e:
            logger.warning("Handler %s reported: %s", capability, e.message)
            response = {"error": e.message}
            status = STATUS_HANDLER_ERROR

        return DispatchResult(
            session_id=session_id,
            capability=capability,
            response=response,
            message_number=message_number,
            timestamp=iso_timestamp(),
            payment=payment.status,
            status=status,
        )

    def dispatch_request(
        self,
        request: MessageRequest,
        payment_proof: Optional[str] = None,
    ) -> DispatchResult:
        return self.dispatch(
            request.session_id,
            request.capability,
            request.payload,
            payment_proof,
        )
