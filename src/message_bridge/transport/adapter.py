"""Transport adapter - ``call(type, data) -> Response`` that never raises.

Every outcome of a request is folded into a ``Response``:

- receiver answered:            its Response
- channel failed to deliver:    {"success": false, "error": <transport text>}
- receiver never replied:       {"success": false, "error": "No response received"}
- reply is not a Response:      {"success": false, "error": "Malformed response: ..."}
- deadline passed:              {"success": false, "error": "Request timed out after 30s"}

A transport failure and an application failure look the same at the type
level. Callers should branch on ``success`` only.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from ..errors import ChannelError
from ..protocol.envelope import Envelope, Response, describe_validation_error
from .channel import Channel

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
NO_RESPONSE = "No response received"


class TransportAdapter:
    """Uniform request/response call over any channel.

    Usage:
        transport = TransportAdapter(channel, timeout=10.0)
        response = await transport.call("TASKS_CREATE", {"title": "Buy milk"})
        if response.success:
            ...

    Each call is bounded by ``timeout`` seconds (None waits forever). When the
    deadline passes the caller is released with a failed Response; the
    receiver is left to finish and its late reply is discarded.
    """

    def __init__(self, channel: Channel, timeout: float | None = DEFAULT_TIMEOUT) -> None:
        self._channel = channel
        self._timeout = timeout

    @property
    def channel(self) -> Channel:
        return self._channel

    @property
    def timeout(self) -> float | None:
        return self._timeout

    async def call(self, message_type: str, data: Any = None) -> Response:
        """Send one request and return its Response. Never raises."""
        try:
            message = Envelope(type=message_type, data=data).to_wire()
        except ValidationError as e:
            return Response.fail(f"Invalid message: {describe_validation_error(e)}")

        deadline = asyncio.timeout(self._timeout)
        try:
            async with deadline:
                payload = await self._channel.send(message)
        except TimeoutError as e:
            if deadline.expired():
                logger.warning(f"{message_type} timed out after {self._timeout:g}s")
                return Response.fail(f"Request timed out after {self._timeout:g}s")
            # Raised by the channel itself, not our deadline
            logger.warning(f"{message_type} failed in transport: {e!r}")
            return Response.fail(str(e) or type(e).__name__)
        except ChannelError as e:
            logger.warning(f"{message_type} failed in transport: {e}")
            return Response.fail(str(e) or "Transport error")
        except Exception as e:
            logger.exception(f"Unexpected channel failure for {message_type}")
            return Response.fail(str(e) or "Transport error")

        if payload is None:
            return Response.fail(NO_RESPONSE)

        try:
            return Response.from_wire(payload)
        except ValidationError as e:
            return Response.fail(f"Malformed response: {describe_validation_error(e)}")
