"""Runtime configuration.

Values come from ``MESSAGE_BRIDGE_*`` environment variables; command-line
flags override them.

    MESSAGE_BRIDGE_STORAGE_PATH      JSON storage file (~/.message-bridge/storage.json)
    MESSAGE_BRIDGE_NO_PERSIST        1/true/yes keeps storage in memory
    MESSAGE_BRIDGE_API_BASE_URL      Remote API root (http://localhost:3000)
    MESSAGE_BRIDGE_REQUEST_TIMEOUT   Seconds per request, 0 disables (30)
    MESSAGE_BRIDGE_SEED_DEMO_TASKS   Seed demo tasks into empty storage (true)
    MESSAGE_BRIDGE_LOG_LEVEL         Logging level (WARNING)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .storage.kv import JsonFileStore, KeyValueStore, MemoryStore

ENV_PREFIX = "MESSAGE_BRIDGE_"

_TRUE = ("1", "true", "yes")
_FALSE = ("0", "false", "no")


def default_storage_path() -> Path:
    return Path.home() / ".message-bridge" / "storage.json"


def _flag(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"Expected a boolean, got {value!r}")


@dataclass
class BridgeConfig:
    """Settings for the background runtime and its clients."""

    storage_path: Path = field(default_factory=default_storage_path)
    persist: bool = True
    api_base_url: str = "http://localhost:3000"
    request_timeout: float | None = 30.0
    seed_demo_tasks: bool = True
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> BridgeConfig:
        """Build a config from environment variables.

        Raises:
            ValueError: If a variable holds an unparseable value
        """
        env = os.environ if env is None else env
        config = cls()

        if path := env.get(f"{ENV_PREFIX}STORAGE_PATH"):
            config.storage_path = Path(path).expanduser()
        config.persist = not _flag(env.get(f"{ENV_PREFIX}NO_PERSIST"), False)
        if base_url := env.get(f"{ENV_PREFIX}API_BASE_URL"):
            config.api_base_url = base_url.rstrip("/")
        if timeout := env.get(f"{ENV_PREFIX}REQUEST_TIMEOUT"):
            seconds = float(timeout)
            config.request_timeout = seconds if seconds > 0 else None
        config.seed_demo_tasks = _flag(env.get(f"{ENV_PREFIX}SEED_DEMO_TASKS"), True)
        if level := env.get(f"{ENV_PREFIX}LOG_LEVEL"):
            config.log_level = level.upper()

        return config

    @property
    def users_url(self) -> str:
        return f"{self.api_base_url}/users"

    @property
    def llm_url(self) -> str:
        return f"{self.api_base_url}/llm"

    def create_store(self) -> KeyValueStore:
        """The store this config asks for."""
        if not self.persist:
            return MemoryStore()
        return JsonFileStore(self.storage_path)


def configure_logging(level: str = "WARNING") -> None:
    """Send logs to stderr (stdout carries command output)."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stderr,
    )
