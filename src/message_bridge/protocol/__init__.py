"""Routing protocol layer.

Defines the request/response contract shared by every surface:

- Envelope: ``{type, data}`` request sent through the channel
- Response: ``{success, data, error, message, status}`` result of every request
- ServiceRegistry: ordered prefix -> service table (first match wins)
- MessageDispatcher: turns one envelope into exactly one Response
"""

from .dispatcher import BuiltinType, MessageDispatcher, ReplyOnce, Sender
from .envelope import Envelope, Response
from .registry import APIService, RegistryEntry, ServiceRegistry

__all__ = [
    "APIService",
    "BuiltinType",
    "Envelope",
    "MessageDispatcher",
    "RegistryEntry",
    "ReplyOnce",
    "Response",
    "Sender",
    "ServiceRegistry",
]
