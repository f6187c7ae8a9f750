"""Transport layer.

Abstracts the one-shot request channel so the client surface and internal
callers use the same contract, ``TransportAdapter.call(type, data)``, which
always resolves to a Response.

Channels:
- InProcessChannel - receiver in the same event loop (JSON-copied payloads)
- HTTPChannel - receiver is a bridge server (``POST /message``)
- MockChannel - canned replies for testing
"""

from .adapter import DEFAULT_TIMEOUT, NO_RESPONSE, TransportAdapter
from .channel import (
    CHANNEL_CLOSED,
    NO_RECEIVER,
    Channel,
    HTTPChannel,
    InProcessChannel,
    MockChannel,
    create_http_channel,
    create_inprocess_channel,
    create_mock_channel,
)

__all__ = [
    "CHANNEL_CLOSED",
    "DEFAULT_TIMEOUT",
    "NO_RECEIVER",
    "NO_RESPONSE",
    "Channel",
    "HTTPChannel",
    "InProcessChannel",
    "MockChannel",
    "TransportAdapter",
    "create_http_channel",
    "create_inprocess_channel",
    "create_mock_channel",
]
