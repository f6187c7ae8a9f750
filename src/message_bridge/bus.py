"""Event Bus - in-process pub/sub for bridge notifications.

Storage changes and dispatched messages are announced here so that other
components (settings views, diagnostics) can react without being wired to
the code that caused them.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class EventDefinition(Generic[T]):
    """Typed event definition.

    Usage:
        StorageChanged = Bus.define("storage.changed", StorageChangedProps)
        await Bus.publish(StorageChanged, StorageChangedProps(keys=["tasks"]))
    """

    type: str
    schema: type[T]


# Subscribers receive {"type": ..., "properties": {...}}
EventCallback = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]


class Bus:
    """Class-level event bus with a wildcard channel.

    Subscriber failures are logged and never reach the publisher.
    """

    _subscriptions: dict[str, list[EventCallback]] = {}
    _lock: asyncio.Lock | None = None

    @classmethod
    def _get_lock(cls) -> asyncio.Lock:
        """Get or create the lock (created lazily inside a running loop)."""
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    def define(cls, event_type: str, schema: type[T]) -> EventDefinition[T]:
        """Define a typed event.

        Args:
            event_type: Dot-separated event name (e.g., "storage.changed")
            schema: Pydantic model for event properties
        """
        return EventDefinition(type=event_type, schema=schema)

    @classmethod
    async def publish(cls, event_def: EventDefinition[T], properties: T) -> None:
        """Deliver an event to its subscribers, then to wildcard subscribers."""
        payload = {"type": event_def.type, "properties": properties.model_dump()}

        async with cls._get_lock():
            targets = list(cls._subscriptions.get(event_def.type, []))
            targets.extend(cls._subscriptions.get("*", []))

        for callback in targets:
            try:
                await callback(payload)
            except Exception:
                logger.exception(f"Error in subscriber for {event_def.type}")

    @classmethod
    async def subscribe(
        cls, event_def: EventDefinition[T], callback: EventCallback
    ) -> Callable[[], None]:
        """Subscribe to one event type. Returns an unsubscribe function."""
        return await cls._subscribe(event_def.type, callback)

    @classmethod
    async def subscribe_all(cls, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to every event. Returns an unsubscribe function."""
        return await cls._subscribe("*", callback)

    @classmethod
    async def _subscribe(cls, key: str, callback: EventCallback) -> Callable[[], None]:
        async with cls._get_lock():
            cls._subscriptions.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = cls._subscriptions.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    @classmethod
    def subscriber_count(cls, event_def: EventDefinition[Any] | None = None) -> int:
        """Number of subscribers for an event type (all types when omitted)."""
        if event_def is None:
            return sum(len(callbacks) for callbacks in cls._subscriptions.values())
        return len(cls._subscriptions.get(event_def.type, []))

    @classmethod
    def reset(cls) -> None:
        """Reset bus state (for testing)."""
        cls._subscriptions = {}
        cls._lock = None
