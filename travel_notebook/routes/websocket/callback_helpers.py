# travel_notebook/routes/websocket/callback_helpers.py
"""Helper functions for wiring itinerary store changes to Socket.IO events."""

import logging

from travel_notebook.api.services.map_service import MapService

logger = logging.getLogger(__name__)


def wire_store_callbacks(socketio, editor_session, sid: str, namespace: str = "/travel/ws") -> None:
    """
    Bridges ItineraryStore changes → Socket.IO events.

    Every change emits ``itinerary_state``; ``map_data`` is only emitted when
    the block document itself was replaced, so save-status updates do not
    redraw the map.
    """
    last_document = {"value": None}

    def _on_state(state) -> None:
        try:
            socketio.emit("itinerary_state", state.to_dict(), to=sid, namespace=namespace)
        except Exception as exc:
            logger.exception("Failed emitting itinerary_state: %s", exc)

        if state.editor_data is None or state.editor_data is last_document["value"]:
            return
        last_document["value"] = state.editor_data
        try:
            map_data = MapService.document_to_map_data(state.editor_data)
            map_data["directions"] = [d.to_dict() for d in state.directions_data]
            socketio.emit("map_data", map_data, to=sid, namespace=namespace)
        except Exception as exc:
            logger.exception("Failed emitting map_data: %s", exc)

    editor_session.unsubscribe = editor_session.store.subscribe(_on_state)
    logger.debug(f"Wired store callbacks for {sid}")
