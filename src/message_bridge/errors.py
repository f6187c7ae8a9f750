"""Exception types used inside the bridge.

None of these ever cross the channel. Every one of them is converted into a
failed ``Response`` at the boundary where it is caught.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for bridge errors."""


class ChannelError(BridgeError):
    """The channel could not deliver a request or its reply.

    Raised for a missing receiver, a closed channel, or a payload that is not
    JSON-serializable.
    """


class RegistryBusyError(BridgeError):
    """A service was registered while a dispatch was in flight."""


class HandlerError(BridgeError):
    """A service rejected a request.

    The message is user-facing and becomes ``Response.error`` verbatim.
    """


class NotFoundError(HandlerError):
    """The requested record does not exist."""


class ValidationFailure(HandlerError):
    """A request payload failed a business precondition."""
