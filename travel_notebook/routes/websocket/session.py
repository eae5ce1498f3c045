# travel_notebook/routes/websocket/session.py
"""WebSocket handlers for the editor session and map integration."""

import logging
from flask import request

from .base import BaseWebSocketHandler, NAMESPACE
from travel_notebook.api.converter import update_place_in_document
from travel_notebook.api.errors import TravelNotebookError, ValidationError
from travel_notebook.api.models import BlockDocument, DirectionsData
from travel_notebook.api.places import find_place_by_name
from travel_notebook.api.services.itinerary_service import GenerationRequest, ItineraryService
from travel_notebook.api.services.session_manager import get_session_manager

logger = logging.getLogger(__name__)


class SessionHandler(BaseWebSocketHandler):
    """Handles editor-session WebSocket events."""

    def _store(self):
        editor_session = get_session_manager().get_session(request.sid)
        if editor_session is None:
            raise TravelNotebookError("No editor session available")
        return editor_session.store

    def register_handlers(self):
        """Register editor-session event handlers."""

        @self.socketio.on("open_itinerary", namespace=NAMESPACE)
        def handle_open_itinerary(data):
            """Load a saved itinerary into this session."""
            self.log_event("open_itinerary", data)
            try:
                itinerary_id = (data or {}).get("id")
                if not itinerary_id:
                    raise ValidationError("An itinerary id is required")
                store = self._store()
                if not store.load(itinerary_id):
                    self.emit_to_client("error", {
                        "message": store.state.error,
                        "event": "open_itinerary",
                    })
            except Exception as exc:
                self.handle_error(exc, "open_itinerary")

        @self.socketio.on("new_itinerary", namespace=NAMESPACE)
        def handle_new_itinerary(data=None):
            """Start over; with a trip form, generate and open a new itinerary."""
            self.log_event("new_itinerary", data)
            try:
                store = self._store()
                if not data or not data.get("destination"):
                    store.clear_itinerary()
                    return

                result = ItineraryService.generate_itinerary(GenerationRequest.from_dict(data))
                store.set_generated(result.itinerary, result.directions, result.metadata, document=result.document)
            except Exception as exc:
                self.handle_error(exc, "new_itinerary")

        @self.socketio.on("editor_change", namespace=NAMESPACE)
        def handle_editor_change(data):
            """Apply the editor's current document.

            ``source: "system"`` marks programmatic updates, which only
            count as changes when the content hash moved.
            """
            try:
                data = data or {}
                if not isinstance(data.get("editorData"), dict):
                    raise ValidationError("editorData is required")
                document = BlockDocument.from_dict(data["editorData"])
                store = self._store()
                if data.get("source") == "system":
                    store.set_editor_data(document)
                else:
                    store.update_editor_data(document)
                logger.debug(f"[WS] editor_change - {len(document.blocks)} blocks")
            except Exception as exc:
                self.handle_error(exc, "editor_change")

        @self.socketio.on("directions_update", namespace=NAMESPACE)
        def handle_directions_update(data):
            try:
                raw = (data or {}).get("directions") or []
                directions = [DirectionsData.from_dict(item) for item in raw if isinstance(item, dict)]
                self._store().set_directions_data(directions)
            except Exception as exc:
                self.handle_error(exc, "directions_update")

        @self.socketio.on("select_place", namespace=NAMESPACE)
        def handle_select_place(data):
            try:
                data = data or {}
                self._store().select_place(data.get("uid"), data.get("dayIndex"))
            except Exception as exc:
                self.handle_error(exc, "select_place")

        @self.socketio.on("save_now", namespace=NAMESPACE)
        def handle_save_now(data=None):
            """Manual save or retry after a failed auto-save."""
            self.log_event("save_now")
            try:
                response = self._store().save_now()
                if response is not None:
                    self.emit_to_client("save_result", response.to_dict())
            except Exception as exc:
                self.handle_error(exc, "save_now")

        @self.socketio.on("lookup_place", namespace=NAMESPACE)
        def handle_lookup_place(data):
            """Search Google Places for a free-text place the user typed."""
            try:
                query = ((data or {}).get("query") or "").strip()
                if not query:
                    raise ValidationError("A query is required")
                result = find_place_by_name(query)
                self.emit_to_client("place_lookup_result", {"query": query, "result": result})
            except Exception as exc:
                self.handle_error(exc, "lookup_place")

        @self.socketio.on("place_details", namespace=NAMESPACE)
        def handle_place_details(data):
            """Apply a chosen lookup result to one place of the open document."""
            try:
                data = data or {}
                uid = data.get("uid")
                details = data.get("details")
                if not uid or not isinstance(details, dict):
                    raise ValidationError("uid and details are required")
                store = self._store()
                document = store.state.editor_data
                if document is None:
                    raise ValidationError("No itinerary is open")
                store.update_editor_data(update_place_in_document(document, uid, details))
            except Exception as exc:
                self.handle_error(exc, "place_details")
