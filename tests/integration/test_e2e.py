"""
Xiaobei end-to-end integration tests.

Tests the complete agent-to-agent flow over HTTP:
- Discovery
- Handshake (accepted and rejected)
- Free and paid messages
- Authorization failures
- Session listing
- Error envelopes and request ids
- AgentClient against the real app (payer and re-handshake retries)

Test scenarios:
1. Free chat: handshake for chat → message → payment "free"
2. Paid translate: no proof → 402; valid proof → payment "verified"
3. Unknown session → 401, never 400
4. Ungranted capability → 400 listing the grant
5. Replayed proof accepted
6. Handler semantic error → 200 with status "handler_error"

Real implementations, no mocks.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from tests.fixtures.agents import (
    INVALID_PROOF,
    VALID_PROOF,
    build_app,
    build_service,
    expected_chat_reply,
)
from xiaobei.client import AgentClient, AgentResponseError
from xiaobei.core.types import PAYMENT_HEADER, REQUEST_ID_HEADER
from xiaobei.transport import HTTPTransport


@pytest.fixture
def service():
    return build_service()


@pytest.fixture
def client(service):
    with TestClient(build_app(service)) as test_client:
        yield test_client


def handshake(client, capabilities=None, requester="t1"):
    body = {"from": requester}
    if capabilities is not None:
        body["capabilities_request"] = capabilities
    response = client.post("/agent/handshake", json=body)
    assert response.status_code == 200, response.text
    return response.json()


def send(client, session_id, capability, payload=None, proof=None):
    headers = {PAYMENT_HEADER: proof} if proof else {}
    return client.post(
        "/agent/message",
        json={"session_id": session_id, "capability": capability, "payload": payload or {}},
        headers=headers,
    )


class TestDiscovery:

    def test_agent_card(self, client):
        response = client.get("/.well-known/agent.json")
        assert response.status_code == 200

        doc = response.json()
        assert doc["protocol"] == "xiaobei/v1"
        assert doc["name"] == "xiaobei"
        assert doc["capabilities"] == ["translate", "code-review", "summarize", "chat"]
        assert doc["handshake"] == "http://testserver/agent/handshake"
        assert doc["message"] == "http://testserver/agent/message"

    def test_info_and_health(self, client):
        info = client.get("/").json()
        assert info["agent"] == "xiaobei"
        assert info["endpoints"]["handshake"] == "POST /agent/handshake"

        health = client.get("/health").json()
        assert health["ok"] is True
        assert health["timestamp"].endswith("Z")


class TestFreeChat:
    """Scenario 1."""

    def test_handshake_and_chat(self, client):
        accepted = handshake(client, ["chat"])
        assert accepted["accepted"] is True
        assert accepted["capabilities_available"] == ["chat"]
        assert accepted["pricing"]["chat"] == {"price": "free"}

        response = send(client, accepted["session_id"], "chat", {"message": "hi"})
        assert response.status_code == 200

        body = response.json()
        assert body["status"] == "ok"
        assert body["response"]["reply"] == expected_chat_reply("hi")
        assert body["metadata"]["payment"] == "free"
        assert body["metadata"]["message_number"] == 1

    def test_free_chat_ignores_proof(self, client):
        session_id = handshake(client, ["chat"])["session_id"]
        response = send(client, session_id, "chat", {"message": "hi"}, proof=INVALID_PROOF)
        assert response.status_code == 200
        assert response.json()["metadata"]["payment"] == "free"


class TestPaidTranslate:
    """Scenario 2 and the replay pin."""

    def test_payment_required_then_verified(self, client):
        session_id = handshake(client, ["translate"])["session_id"]

        required = send(client, session_id, "translate", {"text": "hi", "to": "es"})
        assert required.status_code == 402
        body = required.json()
        assert body["error_code"] == "PAYMENT_REQUIRED"
        assert body["details"]["payment"]["protocol"] == "x402"
        assert body["details"]["payment"]["price"]
        assert body["details"]["payment"]["payTo"]

        paid = send(client, session_id, "translate", {"text": "hi", "to": "es"}, proof=VALID_PROOF)
        assert paid.status_code == 200
        assert paid.json()["metadata"]["payment"] == "verified"
        assert paid.json()["metadata"]["message_number"] == 1

    @pytest.mark.parametrize("proof", ["tx-123", "0xabc", "paid"])
    def test_short_proof_verified(self, client, proof):
        session_id = handshake(client, ["translate"])["session_id"]
        response = send(client, session_id, "translate", {"text": "hi"}, proof=proof)

        assert response.status_code == 200
        assert response.json()["metadata"]["payment"] == "verified"

    def test_invalid_proof(self, client):
        session_id = handshake(client, ["translate"])["session_id"]
        response = send(client, session_id, "translate", {"text": "hi"}, proof=INVALID_PROOF)

        assert response.status_code == 402
        assert response.json()["error_code"] == "PAYMENT_INVALID"

    def test_replayed_proof_accepted(self, client):
        """No consumed-payment tracking: the same proof pays twice."""
        session_id = handshake(client, ["translate"])["session_id"]

        first = send(client, session_id, "translate", {"text": "a"}, proof=VALID_PROOF)
        second = send(client, session_id, "translate", {"text": "b"}, proof=VALID_PROOF)

        assert first.status_code == second.status_code == 200
        assert second.json()["metadata"]["message_number"] == 2


class TestAuthorizationFailures:
    """Scenarios 3 and 4."""

    def test_unknown_session_is_401(self, client):
        response = send(client, "nonexistent", "chat", {"message": "hi"})

        assert response.status_code == 401
        body = response.json()
        assert body["error_code"] == "SESSION_NOT_FOUND"
        assert body["error"] == "Invalid or missing session_id"

    def test_missing_session_id_is_401(self, client):
        response = client.post("/agent/message", json={"capability": "chat", "payload": {}})
        assert response.status_code == 401

    def test_ungranted_capability(self, client):
        session_id = handshake(client, ["chat"])["session_id"]
        response = send(client, session_id, "translate", {"text": "hi"}, proof=VALID_PROOF)

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "CAPABILITY_NOT_GRANTED"
        assert body["details"]["available"] == ["chat"]

    @pytest.mark.parametrize("body", [
        {"session_id": "nonexistent", "capability": "chat", "payload": "hi"},
        {"session_id": 123, "capability": "chat", "payload": {"message": "hi"}},
        {"session_id": "nonexistent", "capability": ["chat"]},
        {"session_id": ["s"], "capability": 7, "payload": [1]},
    ])
    def test_unknown_session_wins_over_field_types(self, client, body):
        """A bad session is reported as such, whatever else is wrong with the body."""
        response = client.post("/agent/message", json=body)

        assert response.status_code == 401
        assert response.json()["error_code"] == "SESSION_NOT_FOUND"

    def test_non_string_capability_not_granted(self, client):
        session_id = handshake(client, ["chat"])["session_id"]
        response = client.post(
            "/agent/message",
            json={"session_id": session_id, "capability": ["chat"], "payload": {"message": "hi"}},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "CAPABILITY_NOT_GRANTED"


class TestHandshakeRejections:

    def test_missing_from(self, client):
        response = client.post("/agent/handshake", json={"capabilities_request": ["chat"]})

        assert response.status_code == 400
        body = response.json()
        assert body["accepted"] is False
        assert body["error"] == 'Missing "from" field'

    def test_no_matching_capabilities(self, client):
        response = client.post("/agent/handshake", json={"from": "t1", "capabilities_request": ["teleport"]})

        assert response.status_code == 400
        body = response.json()
        assert body["accepted"] is False
        assert body["error_code"] == "NO_MATCHING_CAPABILITIES"
        assert body["details"]["available_capabilities"] == [
            "translate", "code-review", "summarize", "chat",
        ]

    def test_capabilities_not_array(self, client):
        response = client.post("/agent/handshake", json={"from": "t1", "capabilities_request": "chat"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_invalid_json(self, client):
        response = client.post(
            "/agent/handshake",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["accepted"] is False

    def test_omitted_request_grants_all(self, client):
        accepted = handshake(client)
        assert accepted["capabilities_available"] == ["translate", "code-review", "summarize", "chat"]

    def test_numeric_from_is_coerced(self, client):
        response = client.post("/agent/handshake", json={"from": 123, "capabilities_request": ["chat"]})

        assert response.status_code == 200
        assert response.json()["accepted"] is True
        assert client.get("/agent/sessions").json()["sessions"][0]["from"] == "123"


class TestMessageValidation:

    def test_invalid_json_message(self, client):
        response = client.post(
            "/agent/message",
            content=b"nope",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_deeply_nested_body(self, client):
        response = client.post(
            "/agent/message",
            content=("[" * 100000 + "]" * 100000).encode(),
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_payload_not_object_after_authorization(self, client):
        session_id = handshake(client, ["chat"])["session_id"]
        response = client.post(
            "/agent/message",
            json={"session_id": session_id, "capability": "chat", "payload": "hi"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert "payload" in body["error"]
        assert client.get("/agent/sessions").json()["sessions"][0]["messageCount"] == 0

    def test_handler_error_shape(self, client):
        """Scenario 6: semantic handler error is a dispatched message."""
        session_id = handshake(client, ["chat"])["session_id"]
        response = send(client, session_id, "chat", {"text": "no message field"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "handler_error"
        assert body["response"] == {"error": 'Missing "message" in payload'}
        assert body["metadata"]["message_number"] == 1


class TestSessionsListing:

    def test_message_count_ignores_rejections(self, client):
        session_id = handshake(client, ["chat", "translate"])["session_id"]

        assert send(client, session_id, "chat", {"message": "1"}).status_code == 200
        assert send(client, session_id, "translate", {"text": "x"}).status_code == 402
        assert send(client, session_id, "summarize", {"text": "x"}, VALID_PROOF).status_code == 400
        assert send(client, session_id, "translate", {"text": "x"}, VALID_PROOF).status_code == 200

        listing = client.get("/agent/sessions").json()
        assert listing["active_sessions"] == 1
        session = listing["sessions"][0]
        assert session["id"] == session_id
        assert session["from"] == "t1"
        assert session["capabilities"] == ["chat", "translate"]
        assert session["messageCount"] == 2

    def test_sessions_dropped_on_shutdown(self, service):
        with TestClient(build_app(service)) as client:
            handshake(client, ["chat"])
            assert service.sessions.count() == 1
        assert service.sessions.count() == 0


class TestErrorEnvelope:

    def test_request_id_echoed(self, client):
        response = send(client, "nonexistent", "chat")
        assert response.headers[REQUEST_ID_HEADER]

        custom = client.get("/health", headers={REQUEST_ID_HEADER: "req-42"})
        assert custom.headers[REQUEST_ID_HEADER] == "req-42"

    def test_error_carries_request_id(self, client):
        response = client.post(
            "/agent/message",
            json={"session_id": "nonexistent", "capability": "chat"},
            headers={REQUEST_ID_HEADER: "req-7"},
        )
        body = response.json()
        assert body["request_id"] == "req-7"
        assert body["recoverable"] is True

    def test_unexpected_handler_failure_is_500(self, service):
        def broken(payload):
            raise RuntimeError("boom")

        service.dispatcher.handlers["chat"] = broken
        with TestClient(build_app(service), raise_server_exceptions=False) as client:
            session_id = handshake(client, ["chat"])["session_id"]
            response = send(client, session_id, "chat", {"message": "hi"})

        assert response.status_code == 500
        assert response.json()["error_code"] == "INTERNAL_ERROR"


def asgi_http(service) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=build_app(service)),
        base_url="http://testserver",
    )


def asgi_agent_client(http: httpx.AsyncClient) -> AgentClient:
    return AgentClient(
        "http://testserver",
        "agent-a",
        transport=HTTPTransport("http://testserver", client=http),
    )


class TestAgentClientOverASGI:
    """AgentClient against the real app through httpx.ASGITransport."""

    @pytest.mark.asyncio
    async def test_discover_handshake_chat(self, service):
        async with asgi_http(service) as http, asgi_agent_client(http) as client:
            card = await client.discover()
            assert card["name"] == "xiaobei"

            await client.handshake(["chat"])
            result = await client.send_message("chat", {"message": "hi"})
            assert result["response"]["reply"] == expected_chat_reply("hi")

            health = await client.health()
            assert health["ok"] is True

    @pytest.mark.asyncio
    async def test_payer_flow(self, service):
        paid = []

        def payer(requirements):
            paid.append(requirements["price"])
            return VALID_PROOF

        async with asgi_http(service) as http, asgi_agent_client(http) as client:
            await client.handshake(["translate"])
            result = await client.send_message("translate", {"text": "hi"}, payer=payer)

        assert paid == ["0.001 USDC"]
        assert result["metadata"]["payment"] == "verified"

    @pytest.mark.asyncio
    async def test_rehandshake_after_sessions_cleared(self, service):
        async with asgi_http(service) as http, asgi_agent_client(http) as client:
            await client.handshake(["chat"])
            first_session = client.session_id
            service.sessions.clear_all()

            result = await client.send_message("chat", {"message": "hi"})
            assert client.session_id != first_session
            assert result["session_id"] == client.session_id

            listing = await client.list_sessions()
            assert listing["active_sessions"] == 1

    @pytest.mark.asyncio
    async def test_rejection_raises(self, service):
        async with asgi_http(service) as http, asgi_agent_client(http) as client:
            await client.handshake(["chat"])
            with pytest.raises(AgentResponseError) as exc_info:
                await client.send_message("translate", {"text": "hi"})

        assert exc_info.value.status == 400
        assert exc_info.value.error_code == "CAPABILITY_NOT_GRANTED"
