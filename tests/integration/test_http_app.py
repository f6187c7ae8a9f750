"""Integration tests for the HTTP bridge server.

Exercises the Starlette app with its lifespan (TestClient) and the
HTTPChannel client against it (httpx ASGI transport).
"""

import httpx
import pytest
from starlette.testclient import TestClient

from message_bridge.app import create_app
from message_bridge.client import MessageClient
from message_bridge.runtime import BackgroundRuntime
from message_bridge.storage.kv import MemoryStore
from message_bridge.transport import HTTPChannel, TransportAdapter

pytestmark = pytest.mark.integration


@pytest.fixture
def client(memory_config) -> TestClient:
    """Test client with the runtime started by the app lifespan."""
    app = create_app(runtime=BackgroundRuntime(memory_config, store=MemoryStore()))
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Tests: Health
# =============================================================================


class TestHealthEndpoint:
    def test_health_returns_ok(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "started": True}


# =============================================================================
# Tests: Message endpoint
# =============================================================================


class TestMessageEndpoint:
    def test_health_check_message(self, client: TestClient):
        response = client.post("/message", json={"type": "HEALTH_CHECK"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "healthy"

    def test_task_roundtrip(self, client: TestClient):
        created = client.post(
            "/message", json={"type": "TASKS_CREATE", "data": {"title": "Ship it"}}
        ).json()
        listed = client.post("/message", json={"type": "TASKS_GET_ALL"}).json()

        assert created["success"] is True
        assert [task["id"] for task in listed["data"]] == [created["data"]["id"]]

    def test_failures_are_http_200(self, client: TestClient):
        response = client.post("/message", json={"type": "TASKS_CREATE", "data": {}})

        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "Task title is required"}

    def test_malformed_envelope(self, client: TestClient):
        response = client.post("/message", json={"data": {}})

        assert response.status_code == 200
        assert response.json()["error"].startswith("Invalid message")

    def test_non_json_body(self, client: TestClient):
        response = client.post(
            "/message", content=b"not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid JSON body"}

    def test_origin_reported_as_sender(self, client: TestClient):
        response = client.post(
            "/message",
            json={"type": "GET_TAB_INFO"},
            headers={"origin": "chrome-extension://abcdef"},
        )

        assert response.json() == {"success": True, "data": {"tab": None}}

    def test_cors_allows_extension_origin(self, client: TestClient):
        response = client.options(
            "/message",
            headers={
                "origin": "chrome-extension://abcdef",
                "access-control-request-method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "chrome-extension://abcdef"


# =============================================================================
# Tests: HTTPChannel against the app
# =============================================================================


class TestHTTPChannelAgainstApp:
    async def test_client_over_http(self, memory_config):
        runtime = BackgroundRuntime(memory_config, store=MemoryStore())
        app = create_app(runtime=runtime)
        await runtime.start()
        try:
            async with httpx.AsyncClient(
                transport=httpx.ASGITransport(app=app), base_url="http://bridge.test"
            ) as http_client:
                channel = HTTPChannel("http://bridge.test", client=http_client)
                client = MessageClient(TransportAdapter(channel, timeout=5.0))

                created = await client.tasks.create("Over the wire", priority="low")
                fetched = await client.tasks.get(created.data["id"])
                unknown = await client.call("DANCE")
        finally:
            await runtime.stop()

        assert fetched.success is True
        assert fetched.data["priority"] == "low"
        assert unknown.success is False
        assert unknown.error == "Unknown message type"
