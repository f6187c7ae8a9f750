"""Message dispatcher - one incoming envelope in, exactly one Response out.

The dispatcher sits on the background side of the channel. For each raw
message it:

1. Parses the envelope (malformed messages get a failure reply)
2. Routes registry-prefixed types to their service
3. Answers the fixed built-in types (HEALTH_CHECK, GET_TAB_INFO, PROCESS_DATA)
4. Replies "Unknown message type" to everything else

No exception escapes ``dispatch()`` and the reply callback is invoked exactly
once per message, whatever the handler does.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from pydantic import ValidationError

from ..bus import Bus
from ..events import MessageDispatched, MessageDispatchedProps
from .envelope import (
    UNKNOWN_ERROR,
    Envelope,
    Response,
    describe_validation_error,
    epoch_ms,
)
from .registry import ServiceRegistry

logger = logging.getLogger(__name__)

# Receives the wire form of the Response. May be sync or async.
ReplyCallback = Callable[[dict[str, Any]], Any]
DataProcessor = Callable[[Any], Awaitable[Any]]


class BuiltinType(str, Enum):
    """Message types answered by the dispatcher itself."""

    GET_TAB_INFO = "GET_TAB_INFO"
    PROCESS_DATA = "PROCESS_DATA"
    HEALTH_CHECK = "HEALTH_CHECK"


@dataclass(frozen=True)
class Sender:
    """Opaque identity of the surface that sent a message."""

    id: str | None = None
    url: str | None = None
    tab: Mapping[str, Any] | None = None

    @property
    def origin(self) -> str:
        """Where the message came from, for logging."""
        return self.url or "extension"


class TabInfoProvider(Protocol):
    """Looks up the active tab for GET_TAB_INFO."""

    async def active_tab(self, sender: Sender) -> Mapping[str, Any] | None: ...


class SenderTabProvider:
    """Reports the tab the sender itself lives in."""

    async def active_tab(self, sender: Sender) -> Mapping[str, Any] | None:
        return dict(sender.tab) if sender.tab is not None else None


async def echo_processor(data: Any) -> Any:
    """Default PROCESS_DATA behavior: hand the input back unchanged."""
    return data


class ReplyOnce:
    """Guard that lets a reply callback fire a single time.

    Later calls are dropped and logged. A callback that raises is logged and
    still counts as the reply.
    """

    def __init__(self, reply: ReplyCallback) -> None:
        self._reply = reply
        self.sent = False

    async def __call__(self, response: Response) -> bool:
        if self.sent:
            logger.warning("Dropping duplicate reply for an already-answered message")
            return False
        self.sent = True
        try:
            result = self._reply(response.to_wire())
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Reply callback failed")
        return True


def coerce_response(result: Any) -> Response:
    """Turn a handler's return value into a Response.

    Handlers should return ``Response``; plain dicts of the same shape are
    accepted. Anything else is a handler failure.
    """
    if isinstance(result, Response):
        return result
    if isinstance(result, Mapping):
        try:
            return Response.model_validate(dict(result))
        except ValidationError as e:
            return Response.fail(f"Invalid handler response: {describe_validation_error(e)}")
    return Response.fail(f"Invalid handler response: {type(result).__name__}")


class MessageDispatcher:
    """Routes incoming envelopes to services and built-ins.

    Usage:
        dispatcher = MessageDispatcher(registry)

        # Channel-style: the reply callback gets the wire dict exactly once
        await dispatcher.dispatch(message, sender, send_response)

        # Direct: get the Response back
        response = await dispatcher.dispatch_message(message, sender)

    Handlers are not serialized against each other. Two dispatches in flight
    run their handlers interleaved on the event loop.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        tab_provider: TabInfoProvider | None = None,
        processor: DataProcessor | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            registry: Prefix registry consulted for every message
            tab_provider: Source of active-tab info for GET_TAB_INFO
            processor: Coroutine applied to PROCESS_DATA payloads
        """
        self._registry = registry
        self._tabs = tab_provider or SenderTabProvider()
        self._processor = processor or echo_processor

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    async def dispatch(
        self,
        message: Any,
        sender: Sender | None,
        reply: ReplyCallback,
    ) -> None:
        """Handle one raw message and reply exactly once.

        Args:
            message: Raw decoded request, expected to look like an Envelope
            sender: Identity of the sending surface
            reply: Callback receiving the wire form of the Response
        """
        once = ReplyOnce(reply)
        sender = sender or Sender()

        try:
            response = await self._route(message, sender)
        except Exception:
            logger.exception("Error handling message")
            response = Response.fail("Internal error")

        await once(response)

        message_type = message.get("type") if isinstance(message, Mapping) else None
        await Bus.publish(
            MessageDispatched,
            MessageDispatchedProps(
                type=str(message_type or ""),
                success=response.success,
                origin=sender.origin,
            ),
        )

    async def dispatch_message(self, message: Any, sender: Sender | None = None) -> Response:
        """Handle one raw message and return its Response."""
        replies: list[dict[str, Any]] = []
        await self.dispatch(message, sender, replies.append)
        return Response.from_wire(replies[0])

    async def handle_api_message(self, message_type: str, data: Any) -> Response:
        """Route a prefixed message to its registered service.

        Exceptions raised by the service become failed Responses.
        """
        handler = self._registry.lookup(message_type)
        if handler is None:
            prefixes = ", ".join(self._registry.list_prefixes())
            return Response.fail(
                f"Unknown API message type: {message_type}. Supported prefixes: {prefixes}"
            )

        with self._registry.dispatching():
            try:
                result = handler.handle_message(message_type, data)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                logger.exception(f"API message handling failed for {message_type}")
                return Response.fail(str(e) or UNKNOWN_ERROR)

        return coerce_response(result)

    # =========================================================================
    # Routing
    # =========================================================================

    async def _route(self, message: Any, sender: Sender) -> Response:
        try:
            envelope = Envelope.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Rejected malformed message from {sender.origin}")
            return Response.fail(f"Invalid message: {describe_validation_error(e)}")

        logger.info(f"Received message {envelope.type} from {sender.origin}")

        if self._registry.is_routable(envelope.type):
            return await self.handle_api_message(envelope.type, envelope.data)

        match envelope.type:
            case BuiltinType.HEALTH_CHECK.value:
                return Response.ok({"status": "healthy", "timestamp": epoch_ms()})

            case BuiltinType.GET_TAB_INFO.value:
                return await self._get_tab_info(sender)

            case BuiltinType.PROCESS_DATA.value:
                return await self._process_data(envelope.data)

            case _:
                logger.error(f"Unknown message type: {envelope.type}")
                return Response.fail("Unknown message type")

    async def _get_tab_info(self, sender: Sender) -> Response:
        try:
            tab = await self._tabs.active_tab(sender)
        except Exception:
            logger.exception("Failed to get tab info")
            return Response.fail("Failed to get tab info")
        return Response.ok({"tab": tab})

    async def _process_data(self, data: Any) -> Response:
        logger.info("Processing data")
        try:
            processed = await self._processor(data)
        except Exception:
            logger.exception("Failed to process data")
            return Response.fail("Failed to process data")
        return Response.ok({"processed": True, "data": processed, "timestamp": epoch_ms()})
