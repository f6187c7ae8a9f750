"""Unit tests for the users and LLM services against a mocked HTTP API."""

import json

import httpx
import pytest

from message_bridge.services import LLMAPIService, UsersAPIService, build_registry
from message_bridge.services.tasks import TasksAPIService
from message_bridge.storage.kv import MemoryStore


class RecordingAPI:
    """httpx handler that records requests and replies from a route table."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404)
        status, body = self.routes[key]
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def body(self, index: int = -1):
        return json.loads(self.requests[index].content)


@pytest.fixture
def api():
    return RecordingAPI()


@pytest.fixture
async def http_client(api):
    async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
        yield client


class TestUsersService:
    async def test_get_all(self, api, http_client):
        api.routes[("GET", "/users")] = (200, [{"id": "1", "name": "Ada"}])
        users = UsersAPIService("http://api.test/users", client=http_client)

        response = await users.handle_message("USERS_GET_ALL", None)

        assert response.success is True
        assert response.data == [{"id": "1", "name": "Ada"}]
        assert response.status == 200

    async def test_get_by_id(self, api, http_client):
        api.routes[("GET", "/users/42")] = (200, {"id": "42"})
        users = UsersAPIService("http://api.test/users", client=http_client)

        response = await users.handle_message("USERS_GET_BY_ID", {"id": "42"})

        assert response.data == {"id": "42"}

    async def test_create(self, api, http_client):
        api.routes[("POST", "/users")] = (201, {"id": "7"})
        users = UsersAPIService("http://api.test/users", client=http_client)

        response = await users.handle_message(
            "USERS_CREATE", {"email": "ada@example.com", "name": "Ada"}
        )

        assert response.success is True
        assert response.status == 201
        assert api.body() == {"email": "ada@example.com", "name": "Ada"}

    async def test_create_requires_fields(self, api, http_client):
        users = UsersAPIService("http://api.test/users", client=http_client)

        response = await users.handle_message("USERS_CREATE", {"name": "Ada"})

        assert response.success is False
        assert response.error.startswith("Invalid request")
        assert api.requests == []

    async def test_update_sends_changes_only(self, api, http_client):
        api.routes[("PUT", "/users/7")] = (200, {"id": "7", "name": "Grace"})
        users = UsersAPIService("http://api.test/users", client=http_client)

        await users.handle_message("USERS_UPDATE", {"id": "7", "name": "Grace", "role": "admin"})

        assert api.body() == {"name": "Grace", "role": "admin"}

    async def test_delete_without_body(self, api, http_client):
        api.routes[("DELETE", "/users/7")] = (204, None)
        users = UsersAPIService("http://api.test/users", client=http_client)

        response = await users.handle_message("USERS_DELETE", {"id": "7"})

        assert response.success is True
        assert response.data is None
        assert response.status == 204

    async def test_http_error(self, api, http_client):
        users = UsersAPIService("http://api.test/users", client=http_client)

        response = await users.handle_message("USERS_GET_BY_ID", {"id": "404"})

        assert response.success is False
        assert response.error == "HTTP 404: Not Found"
        assert response.status == 404

    async def test_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused")

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            users = UsersAPIService("http://api.test/users", client=client)
            response = await users.handle_message("USERS_GET_ALL", None)

        assert response.success is False
        assert response.error == "connection refused"

    async def test_unknown_operation(self, http_client):
        users = UsersAPIService("http://api.test/users", client=http_client)

        response = await users.handle_message("USERS_BAN", {"id": "1"})

        assert response.error == "Unknown users operation: USERS_BAN"


class TestLLMService:
    async def test_chat(self, api, http_client):
        api.routes[("POST", "/llm/chat")] = (200, {"reply": "hi"})
        llm = LLMAPIService("http://api.test/llm", client=http_client)

        response = await llm.handle_message(
            "LLM_CHAT",
            {"messages": [{"role": "user", "content": "hello"}], "maxTokens": 64},
        )

        assert response.data == {"reply": "hi"}
        assert api.body() == {
            "messages": [{"role": "user", "content": "hello"}],
            "maxTokens": 64,
        }

    async def test_chat_rejects_bad_role(self, api, http_client):
        llm = LLMAPIService("http://api.test/llm", client=http_client)

        response = await llm.handle_message(
            "LLM_CHAT", {"messages": [{"role": "robot", "content": "beep"}]}
        )

        assert response.success is False
        assert api.requests == []

    @pytest.mark.parametrize(
        ("message_type", "data", "path"),
        [
            ("LLM_COMPLETE", {"prompt": "Once upon"}, "/llm/complete"),
            ("LLM_ANALYZE_SENTIMENT", {"text": "great"}, "/llm/sentiment"),
            ("LLM_SUMMARIZE", {"text": "long text", "maxLength": 10}, "/llm/summarize"),
            ("LLM_EXTRACT_KEYWORDS", {"text": "python asyncio"}, "/llm/keywords"),
        ],
    )
    async def test_post_endpoints(self, api, http_client, message_type, data, path):
        api.routes[("POST", path)] = (200, {"ok": True})
        llm = LLMAPIService("http://api.test/llm", client=http_client)

        response = await llm.handle_message(message_type, data)

        assert response.success is True
        assert api.body() == data

    async def test_get_models(self, api, http_client):
        api.routes[("GET", "/llm/models")] = (200, ["small", "large"])
        llm = LLMAPIService("http://api.test/llm", client=http_client)

        response = await llm.handle_message("LLM_GET_MODELS", None)

        assert response.data == ["small", "large"]

    async def test_invalid_json_reply(self):
        def garbage(request):
            return httpx.Response(200, content=b"not json")

        async with httpx.AsyncClient(transport=httpx.MockTransport(garbage)) as client:
            llm = LLMAPIService("http://api.test/llm", client=client)
            response = await llm.handle_message("LLM_GET_MODELS", None)

        assert response.success is False
        assert response.error.startswith("Invalid JSON from server")

    async def test_unknown_operation(self, http_client):
        llm = LLMAPIService("http://api.test/llm", client=http_client)

        response = await llm.handle_message("LLM_TRANSLATE", {})

        assert response.error == "Unknown LLM operation: LLM_TRANSLATE"


class TestBuildRegistry:
    def test_registers_by_prefix_in_order(self):
        registry = build_registry(
            UsersAPIService(), LLMAPIService(), TasksAPIService(MemoryStore())
        )

        assert registry.list_prefixes() == ["USERS_", "LLM_", "TASKS_"]
