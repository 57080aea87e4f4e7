"""
Xiaobei client transport.

Defines the Transport ABC the client talks through, plus the httpx-backed
HTTPTransport. Keeping the ABC lets tests and other deployments swap in
another carrier without touching AgentClient.

Design:
- Async-first (all operations are async/await)
- JSON in, (status, JSON) out: HTTP error statuses are protocol answers,
  not transport failures
- Error handling: TransportError and subclasses
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Optional
import uuid

import httpx

from xiaobei.core.types import REQUEST_ID_HEADER
from xiaobei.transport.errors import (
    ConnectionError,
    InvalidMessageError,
    TimeoutError,
    TransportError,
)


@dataclass
class TransportResponse:
    """HTTP status, parsed JSON body and response headers."""
    status: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(ABC):
    """
    Abstract transport for Xiaobei clients.

    Design principles:
    1. Async-first: All I/O is non-blocking
    2. Error-explicit: Raise TransportError, never silent failures
    3. Policy-neutral: Leave retries and protocol logic to AgentClient
    """

    @abstractmethod
    async def send(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        request_id: Optional[str] = None,
    ) -> TransportResponse:
        """
        Send a request and wait for the response.

        Args:
            method: HTTP method ("GET", "POST")
            path: Path relative to the agent base URL (e.g., /agent/handshake)
            body: JSON body for POST requests
            headers: Extra headers (e.g., X-Payment)
            timeout: Request timeout in seconds (default 30s)
            request_id: Correlation ID (auto-generated if not provided)

        Returns:
            TransportResponse for any HTTP status

        Raises:
            ConnectionError: Failed to establish connection
            TimeoutError: Request exceeded timeout
            InvalidMessageError: Response body is not a JSON object
            TransportError: Other transport failures
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """
        Close transport and clean up resources.

        Safe to call multiple times.
        """
        raise NotImplementedError

    @staticmethod
    def generate_request_id() -> str:
        """Generate a unique request ID (UUID)."""
        return str(uuid.uuid4())


class HTTPTransport(Transport):
    """Transport over httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        request_id_header: str = REQUEST_ID_HEADER,
    ):
        """
        Args:
            base_url: Agent base URL (trailing slash ignored)
            client: Preconfigured AsyncClient (e.g., with an ASGI transport for tests)
            request_id_header: Header carrying the correlation ID
        """
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None
        self.request_id_header = request_id_header
        self._closed = False

    async def send(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        request_id: Optional[str] = None,
    ) -> TransportResponse:
        if self._closed:
            raise TransportError("Transport is closed", request_id=request_id)
        if request_id is None:
            request_id = self.generate_request_id()

        request_headers = {self.request_id_header: request_id}
        request_headers.update(headers or {})

        try:
            response = await self._client.request(
                method,
                f"{self.base_url}{path}",
                json=body,
                headers=request_headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise TimeoutError(f"{method} {path} timed out after {timeout}s", request_id) from e
        except httpx.ConnectError as e:
            raise ConnectionError(f"Cannot connect to {self.base_url}: {e}", request_id) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}", request_id) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidMessageError(
                f"{method} {path} returned non-JSON body (HTTP {response.status_code})",
                request_id,
            ) from e
        if not isinstance(payload, dict):
            raise InvalidMessageError(f"{method} {path} returned a non-object body", request_id)

        return TransportResponse(
            status=response.status_code,
            body=payload,
            headers=dict(response.headers),
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            await self._client.aclose()
