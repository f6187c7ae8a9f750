"""Background runtime - wires storage, services, registry and dispatcher.

Usage:
    async with BackgroundRuntime(BridgeConfig(persist=False)) as runtime:
        client = runtime.client()
        response = await client.tasks.create("Buy milk")
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .client.client import MessageClient
from .config import BridgeConfig
from .protocol.dispatcher import DataProcessor, MessageDispatcher, Sender, TabInfoProvider
from .services import LLMAPIService, TasksAPIService, UsersAPIService, build_registry
from .storage.kv import KeyValueStore
from .storage.settings import setup_storage
from .transport.adapter import TransportAdapter
from .transport.channel import InProcessChannel

logger = logging.getLogger(__name__)


class BackgroundRuntime:
    """The privileged side of the bridge.

    Registration order is USERS_, LLM_, TASKS_. The registry is built once
    here; nothing registers after ``start()``.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        store: KeyValueStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        tab_provider: TabInfoProvider | None = None,
        processor: DataProcessor | None = None,
    ) -> None:
        """Initialize the runtime.

        Args:
            config: Runtime settings (read from the environment if omitted)
            store: Key/value store (built from config if omitted)
            http_client: Shared client for the remote users/LLM APIs
            tab_provider: Source of GET_TAB_INFO answers
            processor: PROCESS_DATA hook
        """
        self.config = config or BridgeConfig.from_env()
        self.store = store or self.config.create_store()

        remote: dict[str, Any] = {}
        if http_client is not None:
            remote["client"] = http_client
        if self.config.request_timeout is not None:
            remote["timeout"] = self.config.request_timeout

        self.users = UsersAPIService(self.config.users_url, **remote)
        self.llm = LLMAPIService(self.config.llm_url, **remote)
        self.tasks = TasksAPIService(self.store, seed_demo=self.config.seed_demo_tasks)

        self.registry = build_registry(self.users, self.llm, self.tasks)
        self.dispatcher = MessageDispatcher(
            self.registry, tab_provider=tab_provider, processor=processor
        )
        self._channels: list[InProcessChannel] = []
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Initialize storage and load services."""
        if self._started:
            return
        try:
            await setup_storage(self.store)
            await self.tasks.initialize()
        except Exception:
            logger.exception("Failed to initialize background services")
            raise
        self._started = True
        logger.info("Background services initialized successfully")

    async def stop(self) -> None:
        """Stop accepting in-process messages and release resources."""
        for channel in self._channels:
            channel.close()
            await channel.drain()
        self._channels.clear()
        await self.tasks.close()
        await self.store.drain()
        await self.users.aclose()
        await self.llm.aclose()
        self._started = False
        logger.info("Background services stopped")

    def channel(self, sender: Sender | None = None) -> InProcessChannel:
        """A channel from a client surface to this runtime's dispatcher."""
        channel = InProcessChannel(self.dispatcher, sender=sender)
        self._channels.append(channel)
        return channel

    def client(self, sender: Sender | None = None) -> MessageClient:
        """A client surface connected through an in-process channel."""
        transport = TransportAdapter(self.channel(sender), timeout=self.config.request_timeout)
        return MessageClient(transport)

    async def __aenter__(self) -> BackgroundRuntime:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
