"""Users API Service - proxies USERS_ messages to a remote REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from ..protocol.envelope import Response
from .base import RemoteAPIService

DEFAULT_USERS_URL = "http://localhost:3000/users"


class UserRef(BaseModel):
    id: str


class CreateUserRequest(BaseModel):
    email: str
    name: str


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str | None = None
    email: str | None = None


class UsersAPIService(RemoteAPIService):
    """User CRUD against ``<base_url>`` and ``<base_url>/<id>``."""

    prefix = "USERS_"
    unknown_operation = "Unknown users operation: {type}"

    def __init__(self, base_url: str = DEFAULT_USERS_URL, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)

    async def _route(self, message_type: str, data: Any) -> Response | None:
        match message_type:
            case "USERS_GET_ALL":
                return await self._request("GET", action="fetch users")

            case "USERS_GET_BY_ID":
                ref = UserRef.model_validate(data or {})
                return await self._request("GET", f"/{ref.id}", action="fetch user")

            case "USERS_CREATE":
                request = CreateUserRequest.model_validate(data or {})
                return await self._request(
                    "POST", body=request.model_dump(), action="create user"
                )

            case "USERS_UPDATE":
                request = UpdateUserRequest.model_validate(data or {})
                body = request.model_dump(exclude={"id"}, exclude_none=True)
                return await self._request(
                    "PUT", f"/{request.id}", body=body, action="update user"
                )

            case "USERS_DELETE":
                ref = UserRef.model_validate(data or {})
                return await self._request("DELETE", f"/{ref.id}", action="delete user")

            case _:
                return None
