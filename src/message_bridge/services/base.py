"""Base classes for API services.

A service owns one message prefix. Subclasses implement ``_route`` with a
``match`` over their message types and return a Response (or None for a
type they do not know). The base class turns everything else into
Responses:

- unknown type          -> ``unknown_operation`` message
- pydantic ValidationError -> "Invalid request: ..."
- HandlerError          -> its message, verbatim
- any other exception   -> its message, logged with traceback
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx
from pydantic import ValidationError

from ..errors import HandlerError
from ..protocol.envelope import UNKNOWN_ERROR, Response, describe_validation_error

logger = logging.getLogger(__name__)


class BaseAPIService(ABC):
    """Common message handling for prefix services."""

    prefix: ClassVar[str]
    unknown_operation: ClassVar[str] = "Unknown operation: {type}"

    async def handle_message(self, message_type: str, data: Any) -> Response:
        """Handle one message. Never raises."""
        try:
            response = await self._route(message_type, data)
        except ValidationError as e:
            return Response.fail(f"Invalid request: {describe_validation_error(e)}")
        except HandlerError as e:
            logger.info(f"{message_type} rejected: {e}")
            return Response.fail(str(e))
        except Exception as e:
            logger.exception(f"{type(self).__name__} failed on {message_type}")
            return Response.fail(str(e) or UNKNOWN_ERROR)

        if response is None:
            return Response.fail(self.unknown_operation.format(type=message_type))
        return response

    @abstractmethod
    async def _route(self, message_type: str, data: Any) -> Response | None:
        """Dispatch to the operation for message_type, None if unknown."""
        ...


class RemoteAPIService(BaseAPIService):
    """Service backed by a remote JSON HTTP API.

    Non-2xx answers and connection errors become failed Responses
    (``"HTTP 404: Not Found"``); successful ones carry the decoded body in
    ``data`` and the HTTP status in ``status``.
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the service.

        Args:
            base_url: Root URL of the remote resource (no trailing slash)
            client: Shared HTTP client (created lazily if omitted)
            timeout: Request timeout for a client created here
        """
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _request(
        self,
        method: str,
        path: str = "",
        body: Any = None,
        action: str = "request",
    ) -> Response:
        """Call the remote API and wrap the outcome in a Response.

        Args:
            method: HTTP method
            path: Path appended to base_url
            body: JSON body (omitted when None)
            action: Short description for logs
        """
        url = f"{self.base_url}{path}"
        logger.info(f"{action}: {method} {url}")
        try:
            response = await self._get_client().request(method, url, json=body)
        except httpx.HTTPError as e:
            logger.error(f"Failed to {action}: {e}")
            return Response.fail(str(e) or type(e).__name__)

        if response.is_error:
            logger.error(f"Failed to {action}: HTTP {response.status_code}")
            return Response.fail(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status=response.status_code,
            )

        data = None
        if response.content:
            try:
                data = response.json()
            except ValueError as e:
                logger.error(f"Failed to {action}: invalid JSON body")
                return Response.fail(f"Invalid JSON from server: {e}", status=response.status_code)

        return Response.ok(data, status=response.status_code)

    async def aclose(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
