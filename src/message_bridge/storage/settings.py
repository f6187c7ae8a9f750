"""First-run defaults and user settings on top of a KeyValueStore."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from .kv import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, Any] = {
    "theme": "light",
    "notifications": True,
    "autoProcess": False,
}

STORAGE_DEFAULTS: dict[str, Any] = {
    "isFirstRun": True,
    "settings": DEFAULT_SETTINGS,
    "userPreferences": {},
    "extensionData": {},
}


async def setup_storage(store: KeyValueStore) -> bool:
    """Write the first-run defaults unless the store was already initialized.

    Returns:
        True if defaults were written
    """
    stored = await store.get("isFirstRun")
    if stored.get("isFirstRun") is False:
        logger.info("Storage already initialized")
        return False

    defaults = copy.deepcopy(STORAGE_DEFAULTS)
    defaults["isFirstRun"] = False
    await store.set(defaults)
    logger.info("Storage initialized with defaults")
    return True


async def get_user_settings(store: KeyValueStore) -> dict[str, Any]:
    """Return the stored settings, or ``{}`` if they cannot be read."""
    try:
        result = await store.get("settings")
    except Exception:
        logger.exception("Failed to get user settings")
        return {}
    settings = result.get("settings")
    return dict(settings) if isinstance(settings, Mapping) else {}


async def update_user_settings(store: KeyValueStore, new_settings: Mapping[str, Any]) -> dict[str, Any]:
    """Merge new_settings over the stored settings and save them.

    Returns:
        The merged settings
    """
    merged = {**await get_user_settings(store), **new_settings}
    await store.set({"settings": merged})
    return merged
