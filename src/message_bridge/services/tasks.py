"""Tasks API Service - handles all TASKS_ prefixed messages.

Tasks live in memory, owned by a StoreActor, and are written to the
key/value store under ``tasks`` (as ``[id, task]`` pairs) after every
mutation.

Messages:
    TASKS_GET_ALL    {completed?, priority?, limit?, offset?}
    TASKS_GET_BY_ID  {id}
    TASKS_CREATE     {title, description?, priority?}
    TASKS_UPDATE     {id, title?, description?, completed?, priority?}
    TASKS_DELETE     {id}
    TASKS_TOGGLE     {id}
"""

from __future__ import annotations

import logging
import random
import string
import time
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..errors import NotFoundError, ValidationFailure
from ..protocol.envelope import Response
from ..storage.actor import StoreActor
from ..storage.kv import KeyValueStore
from .base import BaseAPIService

logger = logging.getLogger(__name__)

Priority = Literal["low", "medium", "high"]

STORAGE_KEY = "tasks"

DEMO_TASKS: list[dict[str, str]] = [
    {
        "title": "Welcome to Tasks!",
        "description": "This is a demo task to get you started.",
        "priority": "high",
    },
    {
        "title": "Try creating a new task",
        "description": "Click the + button to add your own task.",
        "priority": "medium",
    },
    {
        "title": "Mark tasks as complete",
        "description": "Click the checkbox to complete tasks.",
        "priority": "low",
    },
]

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _now_iso() -> str:
    """UTC timestamp like ``2024-01-15T10:30:00.123Z``."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_task_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"task_{int(time.time() * 1000)}_{suffix}"


# =============================================================================
# Models
# =============================================================================


class Task(BaseModel):
    """A stored task. Serialized with camelCase timestamps."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str = ""
    completed: bool = False
    priority: Priority = "medium"
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class CreateTaskRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    priority: Priority | None = None


class UpdateTaskRequest(BaseModel):
    id: str
    title: str | None = None
    description: str | None = None
    completed: bool | None = None
    priority: Priority | None = None


class GetTasksQuery(BaseModel):
    completed: bool | None = None
    priority: Priority | None = None
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)


class TaskRef(BaseModel):
    id: str


TaskTable = dict[str, Task]


def _require(tasks: TaskTable, task_id: str) -> Task:
    task = tasks.get(task_id)
    if task is None:
        raise NotFoundError(f"Task with ID {task_id} not found")
    return task


# =============================================================================
# Service
# =============================================================================


class TasksAPIService(BaseAPIService):
    """Task CRUD over an actor-owned in-memory table.

    Usage:
        service = TasksAPIService(store)
        await service.initialize()   # load persisted tasks (seed demo tasks if empty)
        response = await service.handle_message("TASKS_CREATE", {"title": "Buy milk"})
        await service.close()
    """

    prefix = "TASKS_"
    unknown_operation = "Unknown tasks message type: {type}"

    def __init__(self, store: KeyValueStore, seed_demo: bool = True) -> None:
        """Initialize the service.

        Args:
            store: Durable key/value store for the task table
            seed_demo: Create the demo tasks when storage holds none
        """
        self._store = store
        self._seed_demo = seed_demo
        self._actor: StoreActor[TaskTable] = StoreActor({}, persist=self._save, name="tasks")

    async def _route(self, message_type: str, data: Any) -> Response | None:
        match message_type:
            case "TASKS_GET_ALL":
                return await self.get_all(data)
            case "TASKS_GET_BY_ID":
                return await self.get_by_id(data)
            case "TASKS_CREATE":
                return await self.create(data)
            case "TASKS_UPDATE":
                return await self.update(data)
            case "TASKS_DELETE":
                return await self.delete(data)
            case "TASKS_TOGGLE":
                return await self.toggle(data)
            case _:
                return None

    # =========================================================================
    # Operations
    # =========================================================================

    async def get_all(self, data: Any = None) -> Response:
        """List tasks.

        Filters apply first, then offset and limit (a limit of 0 means no
        limit), then the page is sorted newest first.
        """
        query = GetTasksQuery.model_validate(data or {})
        tasks = await self._actor.read(lambda table: list(table.values()))

        if query.completed is not None:
            tasks = [task for task in tasks if task.completed == query.completed]
        if query.priority:
            tasks = [task for task in tasks if task.priority == query.priority]
        if query.offset:
            tasks = tasks[query.offset :]
        if query.limit:
            tasks = tasks[: query.limit]

        tasks.sort(key=lambda task: task.created_at, reverse=True)

        return Response.ok(
            [task.to_wire() for task in tasks],
            message=f"Found {len(tasks)} tasks",
        )

    async def get_by_id(self, data: Any) -> Response:
        ref = TaskRef.model_validate(data or {})
        task = await self._actor.read(lambda table: _require(table, ref.id))
        return Response.ok(task.to_wire())

    async def create(self, data: Any) -> Response:
        request = CreateTaskRequest.model_validate(data or {})
        title = (request.title or "").strip()
        if not title:
            return Response.fail("Task title is required")

        now = _now_iso()
        task = Task(
            id=new_task_id(),
            title=title,
            description=(request.description or "").strip(),
            priority=request.priority or "medium",
            created_at=now,
            updated_at=now,
        )

        def insert(table: TaskTable) -> Task:
            table[task.id] = task
            return task

        await self._actor.submit(insert)
        logger.info(f"Created task {task.id}")
        return Response.ok(task.to_wire(), message="Task created successfully")

    async def update(self, data: Any) -> Response:
        request = UpdateTaskRequest.model_validate(data or {})

        def apply(table: TaskTable) -> Task:
            task = _require(table, request.id)
            changes: dict[str, Any] = {"updated_at": _now_iso()}
            if request.title is not None:
                changes["title"] = request.title.strip()
            if request.description is not None:
                changes["description"] = request.description.strip()
            if request.completed is not None:
                changes["completed"] = request.completed
            if request.priority is not None:
                changes["priority"] = request.priority

            updated = task.model_copy(update=changes)
            if not updated.title.strip():
                raise ValidationFailure("Task title cannot be empty")
            table[request.id] = updated
            return updated

        updated = await self._actor.submit(apply)
        return Response.ok(updated.to_wire(), message="Task updated successfully")

    async def delete(self, data: Any) -> Response:
        ref = TaskRef.model_validate(data or {})

        def remove(table: TaskTable) -> None:
            _require(table, ref.id)
            del table[ref.id]

        await self._actor.submit(remove)
        return Response.ok(message="Task deleted successfully")

    async def toggle(self, data: Any) -> Response:
        ref = TaskRef.model_validate(data or {})

        def flip(table: TaskTable) -> Task:
            task = _require(table, ref.id)
            updated = task.model_copy(
                update={"completed": not task.completed, "updated_at": _now_iso()}
            )
            table[ref.id] = updated
            return updated

        updated = await self._actor.submit(flip)
        state = "completed" if updated.completed else "reopened"
        return Response.ok(updated.to_wire(), message=f"Task {state}")

    async def count(self) -> int:
        """Number of stored tasks."""
        return await self._actor.read(len)

    # =========================================================================
    # Lifecycle and persistence
    # =========================================================================

    async def initialize(self) -> None:
        """Load persisted tasks; seed the demo tasks if there are none."""
        loaded = await self._load()

        def replace(table: TaskTable) -> int:
            table.clear()
            table.update(loaded)
            return len(table)

        size = await self._actor.submit(replace, persist=False)
        logger.info(f"Loaded {size} tasks from storage")

        if size == 0 and self._seed_demo:
            for demo in DEMO_TASKS:
                await self.create(demo)

    async def close(self) -> None:
        """Finish pending operations and stop the actor."""
        await self._actor.stop()

    async def _load(self) -> TaskTable:
        try:
            stored = await self._store.get(STORAGE_KEY)
        except Exception:
            logger.exception("Failed to load tasks from storage")
            return {}

        entries = stored.get(STORAGE_KEY)
        if not isinstance(entries, list):
            return {}

        table: TaskTable = {}
        for entry in entries:
            try:
                task_id, payload = entry
                table[task_id] = Task.model_validate(payload)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable stored task: {e}")
        return table

    async def _save(self, table: TaskTable) -> None:
        await self._store.set(
            {STORAGE_KEY: [[task_id, task.to_wire()] for task_id, task in table.items()]}
        )
