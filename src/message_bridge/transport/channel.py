"""One-shot channels between a client surface and the background dispatcher.

A channel carries one JSON request to the receiver and hands back the single
JSON reply, or ``None`` when the receiver finished without replying.
Delivery problems raise ``ChannelError``; nothing else about the request is
interpreted here.

Implementations:
- InProcessChannel: receiver is a dispatcher in the same event loop
- HTTPChannel: receiver is a bridge server reached over HTTP
- MockChannel: canned replies for tests
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from ..errors import ChannelError
from ..protocol.dispatcher import Sender
from ..protocol.envelope import Response

if TYPE_CHECKING:
    from ..protocol.dispatcher import MessageDispatcher

logger = logging.getLogger(__name__)

NO_RECEIVER = "Could not establish connection. Receiving end does not exist."
CHANNEL_CLOSED = "Channel closed"


def _roundtrip(payload: Any) -> Any:
    """Copy a payload through JSON, as a process boundary would."""
    try:
        return json.loads(json.dumps(payload))
    except (TypeError, ValueError) as e:
        raise ChannelError(f"Failed to serialize message: {e}") from e


@runtime_checkable
class Channel(Protocol):
    """Protocol for one-shot request channels."""

    async def send(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Deliver a request and wait for its reply.

        Returns:
            The reply payload, or None if the receiver never replied

        Raises:
            ChannelError: If the request or reply could not be delivered
        """
        ...


class InProcessChannel:
    """Channel to a dispatcher running in the same event loop.

    The request and the reply are both copied through JSON so that only
    serializable data crosses, exactly as between two processes. The receiver
    runs as its own task: a caller that stops waiting (timeout, cancellation)
    does not stop the receiver, whose late reply lands in a discarded slot.

    Usage:
        channel = InProcessChannel(dispatcher, sender=Sender(url="sidepanel"))
        reply = await channel.send({"type": "HEALTH_CHECK"})
    """

    def __init__(
        self,
        dispatcher: MessageDispatcher | None = None,
        sender: Sender | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._sender = sender or Sender()
        self._closed = False
        self._receivers: set[asyncio.Task[None]] = set()

    def attach(self, dispatcher: MessageDispatcher) -> None:
        """Register the receiving end."""
        self._dispatcher = dispatcher

    def close(self) -> None:
        """Refuse further sends. Receivers already running finish normally."""
        self._closed = True

    @property
    def pending(self) -> int:
        """Number of receivers still running."""
        return len(self._receivers)

    async def drain(self) -> None:
        """Wait for every running receiver to finish."""
        while self._receivers:
            await asyncio.gather(*list(self._receivers), return_exceptions=True)

    async def send(self, message: dict[str, Any]) -> dict[str, Any] | None:
        if self._closed:
            raise ChannelError(CHANNEL_CLOSED)
        if self._dispatcher is None:
            raise ChannelError(NO_RECEIVER)

        request = _roundtrip(message)
        slot: asyncio.Future[dict[str, Any] | None] = asyncio.get_running_loop().create_future()

        def deliver(payload: dict[str, Any]) -> None:
            if slot.done():
                logger.debug("Discarding late reply")
                return
            try:
                slot.set_result(_roundtrip(payload))
            except ChannelError as e:
                slot.set_exception(e)

        def finished(task: asyncio.Task[None]) -> None:
            self._receivers.discard(task)
            if not slot.done():
                slot.set_result(None)

        receiver = asyncio.create_task(self._dispatcher.dispatch(request, self._sender, deliver))
        self._receivers.add(receiver)
        receiver.add_done_callback(finished)

        return await slot


class HTTPChannel:
    """Channel to a bridge server's ``POST /message`` endpoint.

    Usage:
        async with HTTPChannel("http://localhost:4096") as channel:
            reply = await channel.send({"type": "TASKS_GET_ALL"})
    """

    def __init__(
        self,
        base_url: str = "http://localhost:4096",
        timeout: float | None = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def send(self, message: dict[str, Any]) -> dict[str, Any] | None:
        body = _roundtrip(message)
        try:
            response = await self._get_client().post("/message", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ChannelError(
                f"HTTP {e.response.status_code}: {e.response.reason_phrase}"
            ) from e
        except httpx.HTTPError as e:
            raise ChannelError(str(e) or type(e).__name__) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ChannelError(f"Invalid reply body: {e}") from e

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this channel created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HTTPChannel:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


@dataclass
class _MockReply:
    payload: dict[str, Any] | None
    error: str | None = None
    release: asyncio.Event | None = None


class MockChannel:
    """Mock channel for testing.

    Records every message and answers with canned replies. A reply can be
    held back until an ``asyncio.Event`` is set, which lets tests choose the
    order in which concurrent requests settle.

    Usage:
        channel = MockChannel()
        channel.set_response("TASKS_GET_ALL", Response.ok([]))
        gate = channel.hold("USERS_GET_ALL", Response.ok([{"id": "1"}]))
        ...
        gate.set()  # let the held reply through
    """

    def __init__(self) -> None:
        self._replies: dict[str, _MockReply] = {}
        self._recorded: list[dict[str, Any]] = []

    @property
    def recorded_messages(self) -> list[dict[str, Any]]:
        """Every message sent through this channel."""
        return list(self._recorded)

    def set_response(
        self,
        message_type: str,
        response: Response | Mapping[str, Any] | None,
    ) -> None:
        """Set the reply for a message type (None simulates no reply)."""
        self._replies[message_type] = _MockReply(payload=_as_payload(response))

    def set_error(self, message_type: str, error: str) -> None:
        """Make sends of a message type fail at the transport level."""
        self._replies[message_type] = _MockReply(payload=None, error=error)

    def hold(
        self,
        message_type: str,
        response: Response | Mapping[str, Any] | None,
    ) -> asyncio.Event:
        """Set a reply that is released only when the returned event is set."""
        release = asyncio.Event()
        self._replies[message_type] = _MockReply(payload=_as_payload(response), release=release)
        return release

    def clear(self) -> None:
        self._replies.clear()
        self._recorded.clear()

    async def send(self, message: dict[str, Any]) -> dict[str, Any] | None:
        request = _roundtrip(message)
        self._recorded.append(request)

        reply = self._replies.get(request.get("type", ""))
        if reply is None:
            return {"success": True, "data": {"mock": True}}
        if reply.release is not None:
            await reply.release.wait()
        if reply.error is not None:
            raise ChannelError(reply.error)
        return reply.payload


def _as_payload(response: Response | Mapping[str, Any] | None) -> dict[str, Any] | None:
    if response is None:
        return None
    if isinstance(response, Response):
        return response.to_wire()
    return dict(response)


# Factory functions


def create_inprocess_channel(
    dispatcher: MessageDispatcher | None = None,
    sender: Sender | None = None,
) -> InProcessChannel:
    """Create a channel to a dispatcher in this process."""
    return InProcessChannel(dispatcher, sender=sender)


def create_http_channel(
    base_url: str = "http://localhost:4096",
    timeout: float | None = 30.0,
) -> HTTPChannel:
    """Create a channel to a running bridge server."""
    return HTTPChannel(base_url=base_url, timeout=timeout)


def create_mock_channel() -> MockChannel:
    """Create a mock channel for testing."""
    return MockChannel()
