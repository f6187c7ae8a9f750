"""Wire shapes for requests and responses.

Requests travel as an ``Envelope`` and every request is answered with exactly
one ``Response``. Both are plain JSON on the wire:

    request:  {"type": "TASKS_CREATE", "data": {"title": "Buy milk"}}
    response: {"success": true, "data": {...}, "message": "Task created successfully"}
    failure:  {"success": false, "error": "Task title is required"}

``Response`` is the only way failure is signalled. Callers branch on
``success`` and never on exceptions.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

# Any JSON-serializable value.
JSONValue = Any

UNKNOWN_ERROR = "Unknown error"


def epoch_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def describe_validation_error(error: ValidationError) -> str:
    """Condense a pydantic error into one line suitable for ``Response.error``."""
    parts = []
    for detail in error.errors():
        location = ".".join(str(item) for item in detail.get("loc", ()))
        message = detail.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or str(error)


class Envelope(BaseModel):
    """A request sent through the channel.

    Example:
        {"type": "USERS_GET_BY_ID", "data": {"id": "42"}}

    ``type`` is a flat namespaced string (``<PREFIX_><OPERATION>``). Types no
    service recognizes are valid envelopes; they are answered with a routing
    failure rather than rejected here.
    """

    type: str = Field(min_length=1)
    data: JSONValue = None

    @property
    def prefix(self) -> str | None:
        """Leading ``PREFIX_`` segment of the type, if it has one."""
        head, sep, _ = self.type.partition("_")
        return f"{head}_" if sep and head else None

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the channel, omitting absent data."""
        wire: dict[str, Any] = {"type": self.type}
        if self.data is not None:
            wire["data"] = self.data
        return wire


class Response(BaseModel):
    """The single result of a request.

    Invariants:
    - ``success=False`` always carries an ``error`` string
    - ``success=True`` never carries one
    """

    success: bool
    data: JSONValue = None
    error: str | None = None
    message: str | None = None
    status: int | None = None

    @model_validator(mode="after")
    def _normalize_error(self) -> Response:
        if self.success:
            self.error = None
        elif not self.error:
            self.error = UNKNOWN_ERROR
        return self

    @classmethod
    def ok(
        cls,
        data: JSONValue = None,
        message: str | None = None,
        status: int | None = None,
    ) -> Response:
        """Create a successful response."""
        return cls(success=True, data=data, message=message, status=status)

    @classmethod
    def fail(
        cls,
        error: str,
        message: str | None = None,
        status: int | None = None,
    ) -> Response:
        """Create a failed response."""
        return cls(success=False, error=error or UNKNOWN_ERROR, message=message, status=status)

    @classmethod
    def from_wire(cls, payload: Any) -> Response:
        """Parse a reply received from the channel.

        Raises:
            ValidationError: If the payload is not a response object
        """
        return cls.model_validate(payload)

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the channel, omitting unset fields."""
        return self.model_dump(exclude_none=True)
