"""Bridge server application.

Creates the Starlette ASGI application exposing the background runtime:

- GET  /health  - liveness
- POST /message - envelope in, Response out
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from .config import BridgeConfig
from .routes import health_routes, message_routes
from .runtime import BackgroundRuntime


def create_app(
    config: BridgeConfig | None = None,
    runtime: BackgroundRuntime | None = None,
) -> Starlette:
    """Create the bridge server application.

    Args:
        config: Runtime settings (from the environment if omitted)
        runtime: Prebuilt runtime (built from config if omitted)

    Returns:
        Configured Starlette application; the runtime starts and stops with
        the application lifespan
    """
    runtime = runtime or BackgroundRuntime(config)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        await runtime.start()
        try:
            yield
        finally:
            await runtime.stop()

    # CORS middleware for local UI surfaces
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origin_regex=r"(https?://(localhost|127\.0\.0\.1)(:\d+)?|chrome-extension://.*)",
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(
        routes=[*health_routes, *message_routes],
        middleware=middleware,
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    return app
