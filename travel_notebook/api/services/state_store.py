# travel_notebook/api/services/state_store.py
"""Per-session itinerary state with debounced auto-save.

The block document is the only thing edits ever change. The structured
itinerary is recomputed from it on every change and is never edited on its
own. Saves are scheduled on an instance-owned timer that is cancelled
before each reschedule and when the store is closed.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from travel_notebook.api.config import get_sync_config
from travel_notebook.api.converter import day_number_from_uid, document_to_itinerary, itinerary_to_document
from travel_notebook.api.errors import TravelNotebookError
from travel_notebook.api.hashing import generate_content_hash
from travel_notebook.api.models import BlockDocument, DirectionsData, StructuredItinerary, TripMetadata
from travel_notebook.api.services.storage_service import ItineraryRepository, SaveRequest, SaveResponse

logger = logging.getLogger(__name__)

IDLE = "idle"
LOADING = "loading"
READY = "ready"
ERROR = "error"


@dataclass
class ItineraryState:
    """Everything the editor session knows about the open itinerary."""

    status: str = IDLE
    error: Optional[str] = None
    current_itinerary_id: Optional[str] = None
    editor_data: Optional[BlockDocument] = None
    current_itinerary: Optional[StructuredItinerary] = None
    directions_data: List[DirectionsData] = field(default_factory=list)
    content_hash: str = ""  # hash of editor_data
    is_dirty: bool = False
    is_saving: bool = False
    last_saved: Optional[str] = None
    selected_place: Optional[Dict[str, Any]] = None
    metadata: Optional[TripMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "error": self.error,
            "currentItineraryId": self.current_itinerary_id,
            "editorData": self.editor_data.to_dict() if self.editor_data else None,
            "currentItinerary": self.current_itinerary.to_dict() if self.current_itinerary else None,
            "directionsData": [d.to_dict() for d in self.directions_data],
            "contentHash": self.content_hash,
            "isDirty": self.is_dirty,
            "isSaving": self.is_saving,
            "lastSaved": self.last_saved,
            "selectedPlace": self.selected_place,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


Listener = Callable[[ItineraryState], None]


class ItineraryStore:
    """Owns one ``ItineraryState`` and persists it through a repository."""

    def __init__(
        self,
        repository: ItineraryRepository,
        user_id: Optional[str],
        debounce_ms: Optional[int] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        if debounce_ms is None:
            debounce_ms = get_sync_config()["autosave_debounce_ms"]
        self._repository = repository
        self._user_id = user_id
        self._delay = debounce_ms / 1000.0
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.RLock()
        self._state = ItineraryState()
        # Bumped whenever the state is replaced wholesale; saves started
        # under an older epoch must not touch the new state.
        self._epoch = 0
        self._directions_changed = False
        self._listeners: List[Listener] = []
        self._closed = False

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> ItineraryState:
        """A snapshot of the current state."""
        with self._lock:
            return replace(self._state, directions_data=list(self._state.directions_data))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a snapshot after every change.

        Returns a function that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            snapshot = replace(self._state, directions_data=list(self._state.directions_data))
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Itinerary state listener failed")

    # ------------------------------------------------------------------
    # Timer discipline
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_save(self) -> None:
        """Restart the debounce timer when there is something to save."""
        state = self._state
        if state.is_saving:
            return
        self._cancel_timer()
        if self._closed or not state.is_dirty or state.editor_data is None:
            return
        timer = self._timer_factory(self._delay, self._autosave)
        timer.daemon = True
        self._timer = timer
        timer.start()
        logger.debug(f"Auto-save scheduled in {self._delay:.3f}s")

    def _autosave(self) -> None:
        try:
            self.save_now()
        except Exception:
            logger.exception("Auto-save failed")

    # ------------------------------------------------------------------
    # Document changes
    # ------------------------------------------------------------------

    @staticmethod
    def _project(document: BlockDocument) -> Tuple[str, StructuredItinerary]:
        return generate_content_hash(document), document_to_itinerary(document)

    def _replace_state(self, state: ItineraryState) -> None:
        self._cancel_timer()
        self._state = state
        self._epoch += 1
        self._directions_changed = False

    def _apply_document(self, document: BlockDocument) -> bool:
        """Install a document and its projection; True if the content hash moved.

        Both are computed before anything is assigned, so a document that
        cannot be projected leaves the state untouched.
        """
        content_hash, itinerary = self._project(document)
        changed = content_hash != self._state.content_hash
        self._state.editor_data = document
        self._state.content_hash = content_hash
        self._state.current_itinerary = itinerary
        self._state.status = READY
        return changed

    def set_editor_data(self, document: BlockDocument) -> None:
        """System-driven update; marks dirty only when the content changed."""
        with self._lock:
            self._state.is_dirty = self._apply_document(document)
            self._schedule_save()
        self._notify()

    def update_editor_data(self, document: BlockDocument) -> None:
        """User edit; always dirty so the map and save cycle see it."""
        with self._lock:
            self._apply_document(document)
            self._state.is_dirty = True
            self._schedule_save()
        self._notify()

    def set_directions_data(self, directions: List[DirectionsData]) -> None:
        """Replace the routes; an open itinerary saves them on the next cycle."""
        with self._lock:
            self._state.directions_data = list(directions)
            if self._state.editor_data is not None:
                self._directions_changed = True
                self._state.is_dirty = True
                self._schedule_save()
        self._notify()

    def set_generated(
        self,
        itinerary: StructuredItinerary,
        directions: List[DirectionsData],
        metadata: Optional[TripMetadata] = None,
        document: Optional[BlockDocument] = None,
    ) -> None:
        """Open a freshly generated itinerary; it has never been saved.

        ``document`` is the block document already built for ``itinerary``;
        one is built here when it is not given.
        """
        if document is None:
            document = itinerary_to_document(itinerary)
        content_hash, projection = self._project(document)
        with self._lock:
            self._replace_state(ItineraryState(
                status=READY,
                editor_data=document,
                current_itinerary=projection,
                content_hash=content_hash,
                directions_data=list(directions),
                metadata=metadata,
                is_dirty=True,
            ))
            self._schedule_save()
        logger.info(f"Opened generated itinerary '{itinerary.title}'")
        self._notify()

    def select_place(self, uid: Optional[str], day_index: Optional[int] = None) -> None:
        """Select a place; the day defaults to the one its UID encodes."""
        if uid and day_index is None:
            day_number = day_number_from_uid(uid)
            day_index = day_number - 1 if day_number else None
        with self._lock:
            self._state.selected_place = {"uid": uid, "dayIndex": day_index} if uid else None
        self._notify()

    def clear_itinerary(self) -> None:
        """Back to an empty state, whatever the current one is."""
        with self._lock:
            self._replace_state(ItineraryState())
        logger.info("Cleared itinerary state")
        self._notify()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self, itinerary_id: str) -> bool:
        """Load an itinerary from the repository.

        On failure the state is marked as errored and any data already
        held is kept.

        Returns:
            True if the itinerary was loaded
        """
        with self._lock:
            self._state.status = LOADING
            self._state.error = None
        self._notify()

        try:
            record = self._repository.load(self._user_id, itinerary_id)
            content_hash, projection = self._project(record.editor_data)
        except TravelNotebookError as e:
            logger.error(f"Failed to load itinerary {itinerary_id}: {e}")
            with self._lock:
                self._state.status = ERROR
                self._state.error = str(e)
            self._notify()
            return False

        with self._lock:
            self._replace_state(ItineraryState(
                status=READY,
                current_itinerary_id=record.id,
                editor_data=record.editor_data,
                current_itinerary=projection,
                content_hash=content_hash,
                directions_data=list(record.directions),
                metadata=record.metadata,
                last_saved=record.updated_at,
            ))
        logger.info(f"Loaded itinerary {record.id}")
        self._notify()
        return True

    def _build_request(self) -> SaveRequest:
        state = self._state
        return SaveRequest(
            editor_data=state.editor_data,
            id=state.current_itinerary_id,
            title=state.current_itinerary.title if state.current_itinerary else None,
            directions=list(state.directions_data),
            metadata=state.metadata,
        )

    def _mark_saved(self, document: BlockDocument, response: SaveResponse) -> None:
        state = self._state
        if response.id:
            state.current_itinerary_id = response.id
        state.error = None
        # Edits made while the request was in flight still need saving
        state.is_dirty = state.editor_data is not document or self._directions_changed

    def save_now(self) -> Optional[SaveResponse]:
        """Persist the current document immediately.

        This is the timer body and the manual retry. A failed save leaves
        the state dirty and records the error. When the itinerary is
        replaced while the request is in flight, the result is not applied.
        """
        with self._lock:
            self._cancel_timer()
            if self._closed or self._state.editor_data is None:
                return None
            epoch = self._epoch
            document = self._state.editor_data
            request = self._build_request()
            directions_changed = self._directions_changed
            self._directions_changed = False
        content_hash = generate_content_hash(document)

        try:
            if (
                request.id
                and not directions_changed
                and self._repository.get_hash(self._user_id, request.id) == content_hash
            ):
                # Nothing to write; settle quietly without a saving flash
                response = SaveResponse(id=request.id, success=True, unchanged=True)
            else:
                with self._lock:
                    if epoch == self._epoch:
                        self._state.is_saving = True
                self._notify()
                response = self._repository.save(self._user_id, request)
        except TravelNotebookError as e:
            response = SaveResponse(id=request.id or "", success=False, error=str(e))

        with self._lock:
            if epoch != self._epoch:
                logger.info(f"Itinerary replaced during save of {response.id or '(new)'}, result not applied")
                return response
            self._state.is_saving = False
            if response.success:
                self._mark_saved(document, response)
                if not response.unchanged:
                    self._state.last_saved = datetime.now(timezone.utc).isoformat()
                if response.conflict_resolved:
                    logger.info(f"Save conflict resolved for {response.id}")
                self._schedule_save()
            else:
                logger.error(f"Failed to save itinerary: {response.error}")
                self._state.error = response.error or "Save failed"
                if directions_changed:
                    self._directions_changed = True
        self._notify()
        return response

    def close(self) -> None:
        """Stop auto-saving; call when the editor session ends."""
        with self._lock:
            self._closed = True
            self._cancel_timer()
            self._listeners.clear()


__all__ = ["ItineraryStore", "ItineraryState", "IDLE", "LOADING", "READY", "ERROR"]
