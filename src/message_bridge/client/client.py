"""Transport-aware client for UI surfaces.

Wraps a TransportAdapter with one-off calls and typed helpers per service.
Every method returns the Response as-is; nothing here raises on failure.

Usage:
    client = MessageClient(TransportAdapter(channel))

    created = await client.tasks.create("Buy milk", priority="high")
    users = await client.users.list()

    # Stateful view over one request stream
    view = client.request(auto_load="TASKS_GET_ALL")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..protocol.envelope import Response
from ..transport.adapter import TransportAdapter
from .request_state import AutoLoad, MessageRequest, Ordering


def _params(**values: Any) -> dict[str, Any]:
    """Drop unset keyword values from a payload."""
    return {key: value for key, value in values.items() if value is not None}


@dataclass
class TasksAPI:
    """Task operations (TASKS_ prefix)."""

    _client: MessageClient

    async def list(
        self,
        completed: bool | None = None,
        priority: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Response:
        """List tasks, newest first, with optional filters."""
        query = _params(completed=completed, priority=priority, limit=limit, offset=offset)
        return await self._client.call("TASKS_GET_ALL", query or None)

    async def get(self, task_id: str) -> Response:
        return await self._client.call("TASKS_GET_BY_ID", {"id": task_id})

    async def create(
        self,
        title: str,
        description: str | None = None,
        priority: str | None = None,
    ) -> Response:
        return await self._client.call(
            "TASKS_CREATE", _params(title=title, description=description, priority=priority)
        )

    async def update(self, task_id: str, **changes: Any) -> Response:
        """Update some of title, description, completed, priority."""
        return await self._client.call("TASKS_UPDATE", {"id": task_id, **changes})

    async def delete(self, task_id: str) -> Response:
        return await self._client.call("TASKS_DELETE", {"id": task_id})

    async def toggle(self, task_id: str) -> Response:
        return await self._client.call("TASKS_TOGGLE", {"id": task_id})


@dataclass
class UsersAPI:
    """User operations (USERS_ prefix)."""

    _client: MessageClient

    async def list(self) -> Response:
        return await self._client.call("USERS_GET_ALL")

    async def get(self, user_id: str) -> Response:
        return await self._client.call("USERS_GET_BY_ID", {"id": user_id})

    async def create(self, email: str, name: str) -> Response:
        return await self._client.call("USERS_CREATE", {"email": email, "name": name})

    async def update(
        self,
        user_id: str,
        name: str | None = None,
        email: str | None = None,
    ) -> Response:
        return await self._client.call(
            "USERS_UPDATE", {"id": user_id, **_params(name=name, email=email)}
        )

    async def delete(self, user_id: str) -> Response:
        return await self._client.call("USERS_DELETE", {"id": user_id})


@dataclass
class LLMAPI:
    """Language model operations (LLM_ prefix)."""

    _client: MessageClient

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Response:
        return await self._client.call(
            "LLM_CHAT",
            {
                "messages": messages,
                **_params(model=model, temperature=temperature, maxTokens=max_tokens),
            },
        )

    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Response:
        return await self._client.call(
            "LLM_COMPLETE",
            {
                "prompt": prompt,
                **_params(model=model, temperature=temperature, maxTokens=max_tokens),
            },
        )

    async def models(self) -> Response:
        return await self._client.call("LLM_GET_MODELS")

    async def analyze_sentiment(self, text: str) -> Response:
        return await self._client.call("LLM_ANALYZE_SENTIMENT", {"text": text})

    async def summarize(self, text: str, max_length: int | None = None) -> Response:
        return await self._client.call(
            "LLM_SUMMARIZE", {"text": text, **_params(maxLength=max_length)}
        )

    async def extract_keywords(self, text: str) -> Response:
        return await self._client.call("LLM_EXTRACT_KEYWORDS", {"text": text})


class MessageClient:
    """Client surface entry point.

    Attributes:
        tasks: Task operations
        users: User operations
        llm: Language model operations
    """

    def __init__(self, transport: TransportAdapter) -> None:
        self._transport = transport
        self.tasks = TasksAPI(self)
        self.users = UsersAPI(self)
        self.llm = LLMAPI(self)

    @property
    def transport(self) -> TransportAdapter:
        return self._transport

    async def call(self, message_type: str, payload: Any = None) -> Response:
        """One-off call without state tracking."""
        return await self._transport.call(message_type, payload)

    async def health(self) -> Response:
        return await self.call("HEALTH_CHECK")

    def request(
        self,
        auto_load: AutoLoad | str | None = None,
        ordering: Ordering | str = Ordering.ARRIVAL,
    ) -> MessageRequest[Any]:
        """Create a request state bound to this client's transport."""
        return MessageRequest(self._transport, auto_load=auto_load, ordering=ordering)
