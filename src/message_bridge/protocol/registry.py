"""Service registry - maps message-type prefixes to services.

Lookup is FIRST MATCH in registration order, not longest prefix. With

    registry.register("TASK", legacy)
    registry.register("TASKS_", tasks)

``lookup("TASKS_CREATE")`` returns ``legacy``: both prefixes match and "TASK"
was registered first. Order is part of the contract, so register more
specific prefixes first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..errors import RegistryBusyError
from .envelope import Response

logger = logging.getLogger(__name__)


@runtime_checkable
class APIService(Protocol):
    """A handler for one family of message types.

    Implementations own their business logic and any backing state. They must
    answer every call with a ``Response``; raising is tolerated (the dispatcher
    converts the exception) but is not the intended failure path.
    """

    async def handle_message(self, message_type: str, data: Any) -> Response:
        """Handle a message whose type starts with this service's prefix."""
        ...


@dataclass(frozen=True)
class RegistryEntry:
    """One ``(prefix, handler)`` registration."""

    prefix: str
    handler: APIService


class ServiceRegistry:
    """Ordered list of prefix registrations.

    The registry is an owned object handed to the dispatcher at startup, not a
    module global. Entries are only ever appended. Registration is refused
    while any dispatch is in flight (single writer, no registration during
    dispatch).

    Usage:
        registry = ServiceRegistry([("USERS_", users), ("TASKS_", tasks)])
        registry.register("LLM_", llm)

        handler = registry.lookup("TASKS_CREATE")  # -> tasks
    """

    def __init__(self, entries: Iterable[tuple[str, APIService]] | None = None) -> None:
        self._entries: list[RegistryEntry] = []
        self._in_flight = 0
        for prefix, handler in entries or ():
            self.register(prefix, handler)

    def register(self, prefix: str, handler: APIService) -> None:
        """Append a registration.

        Overlapping or duplicate prefixes are allowed; the earlier one wins.

        Raises:
            ValueError: If prefix is empty
            TypeError: If handler has no ``handle_message`` method
            RegistryBusyError: If a dispatch is currently in flight
        """
        if not prefix:
            raise ValueError("prefix cannot be empty")
        if not isinstance(handler, APIService):
            raise TypeError(f"{type(handler).__name__} does not implement handle_message()")
        if self._in_flight:
            raise RegistryBusyError(
                f"Cannot register '{prefix}' while {self._in_flight} dispatch(es) are in flight"
            )

        self._entries.append(RegistryEntry(prefix=prefix, handler=handler))
        logger.debug(f"Registered service {type(handler).__name__} for prefix {prefix}")

    def lookup(self, message_type: str) -> APIService | None:
        """Return the handler of the first entry whose prefix starts message_type."""
        for entry in self._entries:
            if message_type.startswith(entry.prefix):
                return entry.handler
        return None

    def list_prefixes(self) -> list[str]:
        """All registered prefixes, in registration order."""
        return [entry.prefix for entry in self._entries]

    def is_routable(self, message_type: str) -> bool:
        """Check whether some registered prefix matches message_type."""
        return self.lookup(message_type) is not None

    @property
    def entries(self) -> tuple[RegistryEntry, ...]:
        """Snapshot of the registrations."""
        return tuple(self._entries)

    @property
    def in_flight(self) -> int:
        """Number of dispatches currently running through the registry."""
        return self._in_flight

    @contextmanager
    def dispatching(self) -> Iterator[None]:
        """Mark a dispatch as in flight for the duration of the block."""
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self.entries)
