"""API services registered with the dispatcher.

Each service owns one message prefix:

- USERS_ -> UsersAPIService (remote REST API)
- LLM_   -> LLMAPIService (remote model API)
- TASKS_ -> TasksAPIService (local, persisted in the key/value store)
"""

from __future__ import annotations

from ..protocol.registry import APIService, ServiceRegistry
from .base import BaseAPIService, RemoteAPIService
from .llm import LLMAPIService
from .tasks import Task, TasksAPIService
from .users import UsersAPIService


def build_registry(*services: BaseAPIService | APIService) -> ServiceRegistry:
    """Register services under their ``prefix`` attribute, in the given order."""
    registry = ServiceRegistry()
    for service in services:
        registry.register(service.prefix, service)
    return registry


__all__ = [
    "BaseAPIService",
    "LLMAPIService",
    "RemoteAPIService",
    "Task",
    "TasksAPIService",
    "UsersAPIService",
    "build_registry",
]
