"""Client request state - ``{data, loading, error}`` over one request stream.

The UI-side primitive a view holds for one logical request: it sends through
the transport, tracks the outcome, and can load itself on creation.

Usage:
    tasks = MessageRequest(transport, auto_load="TASKS_GET_ALL")
    await tasks.mount()           # initial load (already scheduled if a loop runs)
    tasks.data, tasks.loading, tasks.error

    await tasks.send("TASKS_CREATE", {"title": "Buy milk"})
    await tasks.reload()          # re-sends TASKS_GET_ALL
    tasks.reset()

Overlapping sends are not cancelled. With the default ``arrival`` ordering
whichever call settles last overwrites the state, even if it was issued
first. ``issue`` ordering tags each send with a sequence number and ignores
settlements that are not from the latest send.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from ..protocol.envelope import UNKNOWN_ERROR, Response
from ..transport.adapter import TransportAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_AUTOLOAD = "No autoLoad message configured"


class Ordering(str, Enum):
    """How overlapping sends settle."""

    ARRIVAL = "arrival"  # last settled wins
    ISSUE = "issue"  # last issued wins; stale settlements discarded


@dataclass(frozen=True)
class AutoLoad:
    """Message sent automatically when the request state is created."""

    type: str
    payload: Any = None


@dataclass(frozen=True)
class RequestSnapshot(Generic[T]):
    """Immutable view of the request state."""

    data: T | None = None
    loading: bool = False
    error: str | None = None


Listener = Callable[[RequestSnapshot[Any]], None]


class MessageRequest(Generic[T]):
    """Stateful wrapper around one logical request stream.

    State changes only on ``send`` start/settlement and on ``reset``. Listeners
    registered with ``subscribe`` see every snapshot in order.
    """

    def __init__(
        self,
        transport: TransportAdapter,
        auto_load: AutoLoad | str | None = None,
        ordering: Ordering | str = Ordering.ARRIVAL,
    ) -> None:
        """Create the request state.

        If ``auto_load`` is given and an event loop is running, the initial
        send is scheduled right away; otherwise ``mount()`` performs it.

        Args:
            transport: Adapter used for every send
            auto_load: Message (or bare message type) loaded on creation
            ordering: Settlement policy for overlapping sends
        """
        self._transport = transport
        self._auto_load = AutoLoad(auto_load) if isinstance(auto_load, str) else auto_load
        self._ordering = Ordering(ordering)
        self._state: RequestSnapshot[T] = RequestSnapshot()
        self._listeners: list[Listener] = []
        self._issued = 0
        self._mounted = True
        self._initial: asyncio.Task[Response] | None = None

        if self._auto_load is not None:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running loop; auto-load deferred to mount()")
            else:
                self._initial = asyncio.create_task(self.reload())

    # =========================================================================
    # State
    # =========================================================================

    @property
    def data(self) -> T | None:
        return self._state.data

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def snapshot(self) -> RequestSnapshot[T]:
        return self._state

    @property
    def auto_load(self) -> AutoLoad | None:
        return self._auto_load

    @property
    def ordering(self) -> Ordering:
        return self._ordering

    @property
    def mounted(self) -> bool:
        return self._mounted

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every new snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, state: RequestSnapshot[T]) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Request state listener failed")

    # =========================================================================
    # Operations
    # =========================================================================

    async def mount(self) -> Response | None:
        """Run the auto-load if it has not started, and wait for it.

        Returns:
            The auto-load Response, or None without an auto-load
        """
        if self._auto_load is None:
            return None
        if self._initial is None:
            self._initial = asyncio.create_task(self.reload())
        return await self._initial

    async def send(self, message_type: str, payload: Any = None) -> Response:
        """Send a message and track it.

        Returns the raw Response whatever the outcome; the state reflects it
        subject to the ordering policy. After ``unmount()`` the state is left alone.
        """
        self._issued += 1
        sequence = self._issued
        if self._mounted:
            self._update(RequestSnapshot(data=self._state.data, loading=True, error=None))

        try:
            response = await self._transport.call(message_type, payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Transport raised for {message_type}")
            response = Response.fail(str(e) or UNKNOWN_ERROR)

        self._settle(sequence, response)
        return response

    async def reload(self) -> Response:
        """Re-send the auto-load message."""
        if self._auto_load is None:
            return Response.fail(NO_AUTOLOAD)
        return await self.send(self._auto_load.type, self._auto_load.payload)

    def reset(self) -> None:
        """Clear the state without contacting the transport."""
        self._update(RequestSnapshot())

    def unmount(self) -> None:
        """Detach from the view. Later settlements no longer touch the state."""
        self._mounted = False
        if self._initial is not None and not self._initial.done():
            self._initial.cancel()
        self._listeners.clear()

    def _settle(self, sequence: int, response: Response) -> None:
        if not self._mounted:
            return
        if self._ordering is Ordering.ISSUE and sequence != self._issued:
            logger.debug(f"Discarding stale settlement #{sequence} (latest #{self._issued})")
            return

        if response.success:
            self._update(RequestSnapshot(data=response.data, loading=False, error=None))
        else:
            self._update(
                RequestSnapshot(data=None, loading=False, error=response.error or UNKNOWN_ERROR)
            )
