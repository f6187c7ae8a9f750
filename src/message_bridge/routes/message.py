"""Message endpoint - the HTTP end of the channel.

``POST /message`` takes an envelope and answers with its Response. Every
answered envelope is HTTP 200, failures included; only a body that is not
JSON at all is rejected with 400.
"""

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..protocol.dispatcher import Sender

logger = logging.getLogger(__name__)


async def post_message(request: Request) -> JSONResponse:
    """Dispatch one envelope."""
    try:
        message = await request.json()
    except ValueError:
        logger.warning("Rejected /message request with a non-JSON body")
        return JSONResponse({"success": False, "error": "Invalid JSON body"}, status_code=400)

    sender = Sender(
        id=request.client.host if request.client else None,
        url=request.headers.get("origin") or request.headers.get("referer"),
    )
    runtime = request.app.state.runtime
    response = await runtime.dispatcher.dispatch_message(message, sender)
    return JSONResponse(response.to_wire())


message_routes = [
    Route("/message", post_message, methods=["POST"]),
]
