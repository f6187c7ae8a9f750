"""HTTP routes for the bridge server."""

from .health import health_routes
from .message import message_routes

__all__ = ["health_routes", "message_routes"]
