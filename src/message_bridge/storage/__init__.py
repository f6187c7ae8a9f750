"""Persistence for the background process.

- KeyValueStore / MemoryStore / JsonFileStore: generic key/value contract
- StoreActor: serializes mutations of state shared by concurrent handlers
- setup_storage / user settings helpers
"""

from .actor import StoreActor
from .kv import JsonFileStore, KeyValueStore, MemoryStore, on_storage_changed
from .settings import (
    DEFAULT_SETTINGS,
    STORAGE_DEFAULTS,
    get_user_settings,
    setup_storage,
    update_user_settings,
)

__all__ = [
    "DEFAULT_SETTINGS",
    "STORAGE_DEFAULTS",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "StoreActor",
    "get_user_settings",
    "on_storage_changed",
    "setup_storage",
    "update_user_settings",
]
