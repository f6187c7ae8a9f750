"""Health check endpoint."""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route


async def health_check(request: Request) -> JSONResponse:
    """Report that the server is up and whether the runtime has started."""
    runtime = request.app.state.runtime
    return JSONResponse({"status": "ok", "started": runtime.started})


health_routes = [
    Route("/health", health_check, methods=["GET"]),
]
