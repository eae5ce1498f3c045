"""
Travel Notebook – main application entry point

* Flask app + Socket.IO (threading mode) serving the itinerary editor backend.
* HTTP API under ``/travel``; editor sessions on the ``/travel/ws`` namespace.
* The Socket.IO path is ``/travel/socket.io/``, which must be used by the
  JavaScript client.
"""

import os
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from dotenv import load_dotenv

from travel_notebook.api.config import get_port, get_websocket_config
from travel_notebook.api.services.session_manager import (
    SessionManager,
    get_session_manager,
    set_session_manager,
)
from travel_notebook.api.services.storage_service import ItineraryRepository
from travel_notebook.routes.travel import create_travel_blueprint
from travel_notebook.routes.websocket import NAMESPACE, register_websocket_handlers

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(repository=None, testing=False):
    """Build the Flask app and its Socket.IO server.

    Args:
        repository: ItineraryRepository shared by HTTP routes and editor
            sessions; defaults to one on the configured database
        testing: Enable Flask testing mode

    Returns:
        ``(app, socketio)``
    """
    # ----------------------------------------------------------------------- #
    # Flask initialisation
    # ----------------------------------------------------------------------- #
    app = Flask(__name__)

    flask_secret_key = os.getenv("FLASK_SECRET_KEY") or os.urandom(32).hex()
    if "FLASK_SECRET_KEY" not in os.environ:
        logger.warning("No FLASK_SECRET_KEY found. Generated a temporary key.")
    app.secret_key = flask_secret_key

    app.config.update(
        TESTING=testing,
        SESSION_COOKIE_SECURE=False,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=86400,
    )

    # CORS for local dev / cross‑origin front‑end requests
    CORS(app, origins="*", supports_credentials=True)

    # ----------------------------------------------------------------------- #
    # Socket.IO – threading mode
    # ----------------------------------------------------------------------- #
    ws_config = get_websocket_config()
    socketio = SocketIO(
        app,
        cors_allowed_origins=ws_config["cors_allowed_origins"],
        async_mode="threading",
        ping_interval=ws_config["ping_interval"],
        ping_timeout=ws_config["ping_timeout"],
        max_http_buffer_size=ws_config["max_message_size"],
        logger=False,
        engineio_logger=False,
        path="socket.io/",  # Simple path, let the mount handle the prefix
    )
    logger.info("Socket.IO initialised (async_mode=threading)")

    # ----------------------------------------------------------------------- #
    # Persistence, blueprints & WebSocket handlers
    # ----------------------------------------------------------------------- #
    repository = repository or ItineraryRepository()
    set_session_manager(SessionManager(repository))

    app.register_blueprint(create_travel_blueprint(lambda: repository))
    register_websocket_handlers(socketio)

    @app.route("/debug")
    def debug():
        """Simple JSON health endpoint."""
        return {
            "status": "ok",
            "socketio_initialized": True,
            "sessions": get_session_manager().get_stats(),
            "endpoints": {
                "health": "/travel/health",
                "websocket_namespace": NAMESPACE,
            },
        }

    return app, socketio


# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    app, socketio = create_app()
    port = get_port()
    logger.info("Starting travel app on http://localhost:%d", port)
    socketio.run(app, host="0.0.0.0", port=port, debug=False, allow_unsafe_werkzeug=True)
