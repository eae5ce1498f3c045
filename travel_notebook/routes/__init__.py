# travel_notebook/routes/__init__.py
from .travel import create_travel_blueprint
from .websocket import NAMESPACE, register_websocket_handlers

__all__ = ["create_travel_blueprint", "register_websocket_handlers", "NAMESPACE"]
