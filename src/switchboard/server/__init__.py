"""HTTP and WebSocket transport for Switchboard."""

from switchboard.server.app import create_app
from switchboard.server.websocket import WebSocketSubscriber

__all__ = ["WebSocketSubscriber", "create_app"]
