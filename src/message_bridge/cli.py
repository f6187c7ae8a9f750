"""message-bridge CLI.

Usage:
    message-bridge serve                          # HTTP server on 127.0.0.1:4096
    message-bridge serve --port 8080 --no-persist
    message-bridge send HEALTH_CHECK              # via a running server
    message-bridge send TASKS_CREATE --data '{"title": "Buy milk"}'
    message-bridge send TASKS_GET_ALL --local     # in-process runtime, no server
    message-bridge health                         # check server health
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Any

import click
import httpx

from .config import ENV_PREFIX, BridgeConfig, configure_logging
from .protocol.envelope import Response
from .runtime import BackgroundRuntime
from .transport.adapter import TransportAdapter
from .transport.channel import HTTPChannel

DEFAULT_URL = "http://127.0.0.1:4096"


def _load_config() -> BridgeConfig:
    try:
        return BridgeConfig.from_env()
    except ValueError as e:
        raise click.UsageError(f"Invalid {ENV_PREFIX}* environment: {e}") from e


def _parse_data(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--data") from e


def _emit(response: Response) -> None:
    click.echo(json.dumps(response.to_wire(), indent=2, ensure_ascii=False))
    if not response.success:
        sys.exit(1)


@click.group()
@click.option("--log-level", default=None, help="Logging level (overrides MESSAGE_BRIDGE_LOG_LEVEL)")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """message-bridge - typed messaging between UI and background surfaces."""
    config = _load_config()
    if log_level:
        config.log_level = log_level.upper()
    configure_logging(config.log_level)
    ctx.obj = config


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=4096, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--no-persist", is_flag=True, help="Keep storage in memory")
@click.option("--storage", "storage_path", type=click.Path(dir_okay=False), help="Storage file")
@click.pass_obj
def serve(
    config: BridgeConfig,
    host: str,
    port: int,
    reload: bool,
    no_persist: bool,
    storage_path: str | None,
) -> None:
    """Run the background runtime as an HTTP server."""
    import uvicorn

    # The app factory reads its config from the environment
    if no_persist:
        os.environ[f"{ENV_PREFIX}NO_PERSIST"] = "1"
    if storage_path:
        os.environ[f"{ENV_PREFIX}STORAGE_PATH"] = storage_path

    click.echo(f"Starting message-bridge on http://{host}:{port}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "message_bridge.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=config.log_level.lower(),
    )


@main.command()
@click.argument("message_type")
@click.option("--data", "raw_data", default=None, help="JSON payload")
@click.option("--url", default=DEFAULT_URL, help="Server URL")
@click.option("--local", is_flag=True, help="Use an in-process runtime instead of a server")
@click.option("--timeout", type=float, default=None, help="Seconds to wait (0 waits forever)")
@click.pass_obj
def send(
    config: BridgeConfig,
    message_type: str,
    raw_data: str | None,
    url: str,
    local: bool,
    timeout: float | None,
) -> None:
    """Send one message and print its Response (exit 1 on failure)."""
    data = _parse_data(raw_data)
    if timeout is not None:
        config.request_timeout = timeout if timeout > 0 else None

    async def run() -> Response:
        if local:
            async with BackgroundRuntime(config) as runtime:
                return await runtime.client().call(message_type, data)

        async with HTTPChannel(url, timeout=config.request_timeout) as channel:
            transport = TransportAdapter(channel, timeout=config.request_timeout)
            return await transport.call(message_type, data)

    _emit(asyncio.run(run()))


@main.command()
@click.option("--url", default=DEFAULT_URL, help="Server URL")
def health(url: str) -> None:
    """Check server health."""

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url.rstrip('/')}/health")
                if response.status_code == 200:
                    click.echo(f"Server is healthy: {response.json()}")
                else:
                    click.echo(f"Server returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to server at {url}", err=True)
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
