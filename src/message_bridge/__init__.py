"""message-bridge: typed request/response messaging between isolated surfaces.

A UI surface and a privileged background process exchange JSON envelopes
over a one-shot channel. The background side routes each envelope by
message-type prefix and always answers with exactly one Response; the UI side
wraps calls in a request state with loading/error tracking.
"""

from .client import AutoLoad, MessageClient, MessageRequest, Ordering
from .config import BridgeConfig
from .protocol import (
    APIService,
    Envelope,
    MessageDispatcher,
    Response,
    Sender,
    ServiceRegistry,
)
from .runtime import BackgroundRuntime
from .transport import HTTPChannel, InProcessChannel, TransportAdapter

__version__ = "0.1.0"

__all__ = [
    "APIService",
    "AutoLoad",
    "BackgroundRuntime",
    "BridgeConfig",
    "Envelope",
    "HTTPChannel",
    "InProcessChannel",
    "MessageClient",
    "MessageDispatcher",
    "MessageRequest",
    "Ordering",
    "Response",
    "Sender",
    "ServiceRegistry",
    "TransportAdapter",
]
