# travel_notebook/routes/websocket/base.py
"""Base WebSocket handler with common functionality."""

import logging
from flask import request, session
from flask_socketio import emit

from travel_notebook.api.errors import AuthenticationError, TravelNotebookError, ValidationError

logger = logging.getLogger(__name__)

# Define namespace constant
NAMESPACE = "/travel/ws"


class BaseWebSocketHandler:
    """Base class for WebSocket handlers with common functionality."""

    def __init__(self, socketio, namespace=NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def emit_to_client(self, event, data, room=None):
        """Emit event to a specific client or room."""
        try:
            if room:
                self.socketio.emit(event, data, to=room, namespace=self.namespace)
            else:
                emit(event, data, namespace=self.namespace)
        except Exception as e:
            logger.error(f"Failed to emit {event}: {e}")

    def get_client_info(self):
        """Get information about the connected client."""
        return {
            "sid": request.sid,
            "ip": request.remote_addr,
            "origin": request.headers.get("Origin", "unknown"),
            "user_id": session.get("user_id"),
        }

    @staticmethod
    def get_user_id():
        """User identity set on the Flask session by the sign-in layer."""
        return session.get("user_id")

    def log_event(self, event_name, data=None):
        """Log WebSocket events consistently."""
        client_info = self.get_client_info()
        if data:
            logger.info(f"[WS] {event_name} - Client: {client_info['sid']}, Data: {data}")
        else:
            logger.info(f"[WS] {event_name} - Client: {client_info['sid']}")

    def handle_error(self, error, event_name=""):
        """Handle and log errors consistently."""
        client_info = self.get_client_info()
        if isinstance(error, TravelNotebookError):
            logger.warning(f"[WS] {event_name} failed - Client: {client_info['sid']}, Error: {error}")
        else:
            logger.error(f"[WS] Error in {event_name} - Client: {client_info['sid']}, Error: {error}")

        payload = {"message": str(error), "event": event_name}
        if isinstance(error, AuthenticationError):
            payload["code"] = "unauthenticated"
        elif isinstance(error, ValidationError):
            payload["code"] = "invalid"
        self.emit_to_client("error", payload)
