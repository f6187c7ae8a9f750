"""Client surface: request state and typed service helpers."""

from .client import LLMAPI, MessageClient, TasksAPI, UsersAPI
from .request_state import AutoLoad, MessageRequest, Ordering, RequestSnapshot

__all__ = [
    "LLMAPI",
    "AutoLoad",
    "MessageClient",
    "MessageRequest",
    "Ordering",
    "RequestSnapshot",
    "TasksAPI",
    "UsersAPI",
]
