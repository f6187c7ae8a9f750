"""Pytest configuration and shared fixtures."""

import pytest

from message_bridge.bus import Bus
from message_bridge.config import BridgeConfig
from message_bridge.runtime import BackgroundRuntime
from message_bridge.storage.kv import MemoryStore


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_bus():
    """Start every test with an empty event bus."""
    Bus.reset()
    yield
    Bus.reset()


@pytest.fixture
def memory_config() -> BridgeConfig:
    """Config that keeps storage in memory and seeds no demo tasks."""
    return BridgeConfig(persist=False, seed_demo_tasks=False, request_timeout=5.0)


@pytest.fixture
async def runtime(memory_config: BridgeConfig):
    """A started in-process runtime."""
    runtime = BackgroundRuntime(memory_config, store=MemoryStore())
    await runtime.start()
    yield runtime
    await runtime.stop()
