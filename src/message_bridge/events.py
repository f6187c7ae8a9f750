"""Event type definitions published on the Bus."""

from pydantic import BaseModel

from .bus import Bus

# =============================================================================
# Storage Events
# =============================================================================


class StorageChangedProps(BaseModel):
    """Keys in a key/value store were written or removed."""

    keys: list[str]
    area: str = "local"


StorageChanged = Bus.define("storage.changed", StorageChangedProps)


# =============================================================================
# Dispatch Events
# =============================================================================


class MessageDispatchedProps(BaseModel):
    """The dispatcher answered a message."""

    type: str
    success: bool
    origin: str


MessageDispatched = Bus.define("bridge.message", MessageDispatchedProps)
