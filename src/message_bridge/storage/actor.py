"""Store actor - single owner of a piece of mutable state.

Concurrent handlers do not touch shared state directly. They submit
operations to the actor, which runs them one at a time on its own task:

    actor = StoreActor(tasks_by_id, persist=save_tasks)
    task = await actor.submit(lambda tasks: tasks.pop(task_id))

An operation and its durable write both complete before the next operation
starts, so read-modify-write sequences (toggle, update) are atomic with
respect to each other.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")
R = TypeVar("R")

Operation = Callable[[S], R | Awaitable[R]]


@dataclass
class _Job:
    operation: Callable[[Any], Any]
    persist: bool
    future: asyncio.Future[Any]


class StoreActor(Generic[S]):
    """Serializes operations on ``state``.

    Operations receive the state object and may mutate it. An operation that
    raises leaves its exception on the submitter's side and nothing is
    persisted for it. A failing durable write is logged; the in-memory change
    stands.
    """

    def __init__(
        self,
        state: S,
        persist: Callable[[S], Awaitable[None]] | None = None,
        name: str = "store",
    ) -> None:
        """Initialize the actor.

        Args:
            state: The state this actor owns from now on
            persist: Coroutine writing the state durably after each mutation
            name: Used in logs and the worker task name
        """
        self._state = state
        self._persist = persist
        self._name = name
        self._queue: asyncio.Queue[_Job | None] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker task (called lazily by submit)."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name=f"store-actor-{self._name}")

    async def stop(self) -> None:
        """Finish queued operations, then stop the worker."""
        worker = self._worker
        if worker is None or worker.done():
            return
        await self._queue.put(None)
        await worker
        self._worker = None

    async def submit(self, operation: Operation[S, R], *, persist: bool = True) -> R:
        """Run a mutation and, if requested, persist the result.

        Returns:
            Whatever the operation returned

        Raises:
            Exception: Whatever the operation raised
        """
        self.start()
        future: asyncio.Future[R] = asyncio.get_running_loop().create_future()
        await self._queue.put(_Job(operation=operation, persist=persist, future=future))
        return await future

    async def read(self, operation: Operation[S, R]) -> R:
        """Run a read-only operation in order with the mutations."""
        return await self.submit(operation, persist=False)

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            if job is None:
                break
            if job.future.cancelled():
                logger.debug(f"[{self._name}] skipping cancelled operation")
                continue

            try:
                result = job.operation(self._state)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                if not job.future.done():
                    job.future.set_exception(e)
                continue

            if job.persist and self._persist is not None:
                try:
                    await self._persist(self._state)
                except Exception:
                    logger.exception(f"[{self._name}] failed to persist state")

            if not job.future.done():
                job.future.set_result(result)
