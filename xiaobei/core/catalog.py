"""
Capability catalog for the Xiaobei agent.

Implements:
- Agent card schema validation (Pydantic)
- Capability descriptors with payment requirements
- Read-only lookup used by handshake, authorization and payment
- Discovery document rendering
"""

from typing import Dict, Any, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from xiaobei.core.errors import InternalError


class CapabilityModel(BaseModel):
    """Capability descriptor. Payment fields are only meaningful when payment_required."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    payment_required: bool = False
    price: Optional[str] = None
    pay_to: Optional[str] = None
    payment_protocol: Optional[str] = None

    @field_validator("name")
    @classmethod
    def valid_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Capability name must not be empty")
        return v

    @model_validator(mode="after")
    def payment_terms_present(self):
        if self.payment_required:
            missing = [
                field_name
                for field_name in ("price", "pay_to", "payment_protocol")
                if not getattr(self, field_name)
            ]
            if missing:
                raise ValueError(
                    f"Paid capability '{self.name}' is missing: {', '.join(missing)}"
                )
        return self

    def pricing(self) -> Dict[str, Any]:
        """Pricing entry as advertised in handshake responses."""
        if not self.payment_required:
            return {"price": "free"}
        return {
            "price": self.price,
            "protocol": self.payment_protocol,
            "pay_to": self.pay_to,
        }


class AgentCardModel(BaseModel):
    """Static description of the agent."""
    model_config = ConfigDict(frozen=True)

    protocol: str
    name: str
    description: str = ""
    version: str = "0.1.0"
    created: Optional[str] = None
    links: Dict[str, str] = Field(default_factory=dict)
    capabilities: Tuple[CapabilityModel, ...]

    @field_validator("capabilities")
    @classmethod
    def unique_capabilities(cls, v):
        if not v:
            raise ValueError("At least one capability required")
        names = [cap.name for cap in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate capability names: {', '.join(duplicates)}")
        return v


class CapabilityCatalog:
    """
    Read-only view over the agent card.

    Loaded once at startup; descriptor names never change afterwards.
    """

    def __init__(self, card: AgentCardModel):
        self.card = card
        self._descriptors: Dict[str, CapabilityModel] = {
            cap.name: cap for cap in card.capabilities
        }

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "CapabilityCatalog":
        """
        Validate an agent card mapping and build the catalog.

        Args:
            config: Agent card as dict (agent fields plus "capabilities" list)

        Returns:
            CapabilityCatalog

        Raises:
            InternalError: If the agent card fails validation
        """
        try:
            card = AgentCardModel(**config)
        except Exception as e:
            raise InternalError(f"Capability catalog misconfigured: {e}")
        return cls(card)

    @property
    def protocol(self) -> str:
        return self.card.protocol

    @property
    def agent_name(self) -> str:
        return self.card.name

    def describe(self, name: str) -> Optional[CapabilityModel]:
        """Descriptor for a capability, or None if not advertised."""
        return self._descriptors.get(name)

    def is_advertised(self, name: str) -> bool:
        return name in self._descriptors

    def advertised_names(self) -> Tuple[str, ...]:
        """Capability names in configuration order."""
        return tuple(cap.name for cap in self.card.capabilities)

    def pricing(self) -> Dict[str, Dict[str, Any]]:
        return {cap.name: cap.pricing() for cap in self.card.capabilities}

    def discovery_document(self, base_url: str) -> Dict[str, Any]:
        """
        Render the discovery document served at /.well-known/agent.json.

        Args:
            base_url: Externally visible endpoint, without trailing slash

        Returns:
            Discovery document dict
        """
        endpoint = base_url.rstrip("/")
        return {
            "protocol": self.card.protocol,
            "name": self.card.name,
            "description": self.card.description,
            "capabilities": list(self.advertised_names()),
            "version": self.card.version,
            "created": self.card.created,
            "links": dict(self.card.links),
            "endpoint": endpoint,
            "handshake": f"{endpoint}/agent/handshake",
            "message": f"{endpoint}/agent/message",
        }
