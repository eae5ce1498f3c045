# travel_notebook/routes/websocket/connection.py
"""WebSocket connection and disconnection handlers."""

import time
import logging
from flask import request

from .base import BaseWebSocketHandler, NAMESPACE
from .callback_helpers import wire_store_callbacks
from travel_notebook.api.services.session_manager import get_session_manager

logger = logging.getLogger(__name__)


class ConnectionHandler(BaseWebSocketHandler):
    """Handles WebSocket connection lifecycle events."""

    def register_handlers(self):
        """Register connection-related event handlers."""

        @self.socketio.on("connect", namespace=NAMESPACE)
        def handle_connect(auth=None):
            """Open an editor session for the connecting browser."""
            client_info = self.get_client_info()
            self.log_event("connect")

            try:
                editor_session = get_session_manager().create_session(
                    client_info["sid"], client_info["user_id"]
                )
                wire_store_callbacks(self.socketio, editor_session, request.sid, NAMESPACE)

                self.emit_to_client("connected", {
                    "session_id": client_info["sid"],
                    "status": "connected",
                    "authenticated": bool(client_info["user_id"]),
                })
            except Exception as e:
                self.handle_error(e, "connect")

        @self.socketio.on("disconnect", namespace=NAMESPACE)
        def handle_disconnect(*args):
            """Close the editor session; pending auto-saves are cancelled."""
            get_session_manager().remove_session(request.sid, "client_disconnect")
            logger.info(f"WebSocket disconnected, session {request.sid} closed")

        @self.socketio.on("ping", namespace=NAMESPACE)
        def handle_ping():
            """Handle ping for connection testing."""
            self.emit_to_client("pong", {"timestamp": time.time()})
