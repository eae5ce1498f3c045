import pytest

from travel_notebook.api.converter import itinerary_to_document
from travel_notebook.api.errors import PersistenceError
from travel_notebook.api.hashing import generate_content_hash
from travel_notebook.api.models import BlockDocument, DirectionsData, TripMetadata
from travel_notebook.api.services import state_store
from travel_notebook.api.services.state_store import ERROR, IDLE, READY, ItineraryState, ItineraryStore
from travel_notebook.api.services.storage_service import SaveRequest, SaveResponse

USER = "user-1"


@pytest.fixture
def store(repository, timers):
    store = ItineraryStore(repository, USER, debounce_ms=500, timer_factory=timers)
    yield store
    store.close()


class FailingRepository:
    """Saves always fail; loads always miss."""

    def __init__(self):
        self.saves = 0

    def save(self, user_id, request):
        self.saves += 1
        return SaveResponse(id=request.id or "", success=False, error="disk full")

    def get_hash(self, user_id, itinerary_id):
        return None

    def load(self, user_id, itinerary_id):
        raise PersistenceError(f"Itinerary {itinerary_id} not found", not_found=True)


def test_starts_idle(store):
    state = store.state

    assert state.status == IDLE
    assert state.editor_data is None
    assert not state.is_dirty


def test_user_edits_are_always_dirty(store, make_document):
    store.update_editor_data(make_document())
    assert store.state.is_dirty

    store.update_editor_data(make_document())
    assert store.state.is_dirty


def test_system_updates_are_dirty_only_when_content_changes(store, make_document, timers):
    store.set_editor_data(make_document())
    assert store.state.is_dirty

    store.set_editor_data(make_document())
    assert not store.state.is_dirty
    assert timers.active == []


def test_structured_view_follows_the_document(store, make_document):
    store.update_editor_data(make_document(title="Kyoto"))

    state = store.state
    assert state.status == READY
    assert state.current_itinerary.title == "Kyoto"
    assert [p.name for p in state.current_itinerary.days[0].places] == ["Senso-ji Temple"]
    assert state.content_hash == generate_content_hash(make_document(title="Kyoto"))


def test_edits_are_debounced(store, make_document, timers):
    store.update_editor_data(make_document(note="a"))
    store.update_editor_data(make_document(note="ab"))
    store.update_editor_data(make_document(note="abc"))

    assert len(timers.timers) == 3
    assert all(t.cancelled for t in timers.timers[:2])
    assert len(timers.active) == 1
    assert timers.active[0].interval == 0.5
    assert timers.active[0].daemon


def test_autosave_persists_and_clears_dirty(store, repository, make_document, timers):
    store.update_editor_data(make_document(note="Saved text"))

    timers.fire_active()

    state = store.state
    assert not state.is_dirty
    assert not state.is_saving
    assert state.current_itinerary_id
    assert state.last_saved
    assert state.error is None
    record = repository.load(USER, state.current_itinerary_id)
    assert record.editor_data.blocks[2].text == "Saved text"
    assert record.title == "Trip"


def test_unchanged_save_does_not_show_saving(store, make_document, timers):
    store.update_editor_data(make_document())
    timers.fire_active()
    saved_at = store.state.last_saved

    seen_saving = []
    store.subscribe(lambda state: seen_saving.append(state.is_saving))
    store.update_editor_data(make_document())
    timers.fire_active()

    assert not any(seen_saving)
    assert not store.state.is_dirty
    assert store.state.last_saved == saved_at


def test_save_now_reports_unchanged(store, make_document, timers):
    store.update_editor_data(make_document())
    store.save_now()

    response = store.save_now()

    assert response.success and response.unchanged


def test_failed_save_keeps_state_dirty(make_document, timers):
    failing = FailingRepository()
    store = ItineraryStore(failing, USER, debounce_ms=10, timer_factory=timers)
    store.update_editor_data(make_document())

    timers.fire_active()

    state = store.state
    assert failing.saves == 1
    assert state.is_dirty
    assert not state.is_saving
    assert state.error == "disk full"
    assert state.status == READY
    assert timers.active == []

    # The next edit retries
    store.update_editor_data(make_document(note="retry"))
    assert len(timers.active) == 1
    store.close()


def test_repository_exception_becomes_failed_save(make_document, timers):
    class ExplodingRepository(FailingRepository):
        def save(self, user_id, request):
            raise PersistenceError("Database error: locked")

    store = ItineraryStore(ExplodingRepository(), USER, debounce_ms=10, timer_factory=timers)
    store.update_editor_data(make_document())

    response = store.save_now()

    assert not response.success
    assert store.state.error == "Database error: locked"
    assert store.state.is_dirty


def test_edit_during_save_is_saved_next(repository, make_document, timers):
    store = ItineraryStore(repository, USER, debounce_ms=10, timer_factory=timers)
    real_save = repository.save

    def save_with_concurrent_edit(user_id, request):
        store.update_editor_data(make_document(note="typed while saving"))
        return real_save(user_id, request)

    repository.save = save_with_concurrent_edit
    store.update_editor_data(make_document(note="first"))
    timers.fire_active()

    state = store.state
    assert state.is_dirty
    assert state.editor_data.blocks[2].text == "typed while saving"
    assert len(timers.active) == 1
    store.close()


def test_load_replaces_state(store, repository, make_document):
    directions = [DirectionsData(day_index=0, color="#3B82F6", directions_result={"routes": []})]
    metadata = TripMetadata(destination="Tokyo", start_date="2030-05-01", end_date="2030-05-02")
    saved = repository.save(USER, SaveRequest(
        editor_data=make_document(title="Stored"), title="Stored", directions=directions, metadata=metadata,
    ))

    assert store.load(saved.id)

    state = store.state
    assert state.status == READY
    assert state.current_itinerary_id == saved.id
    assert state.current_itinerary.title == "Stored"
    assert not state.is_dirty
    assert state.directions_data[0].color == "#3B82F6"
    assert state.metadata.destination == "Tokyo"
    assert state.last_saved


def test_failed_load_keeps_existing_data(store, make_document):
    store.update_editor_data(make_document(title="Keep me"))

    assert not store.load("missing")

    state = store.state
    assert state.status == ERROR
    assert "not found" in state.error
    assert state.current_itinerary.title == "Keep me"


def test_set_generated_opens_a_dirty_unsaved_itinerary(store, tokyo_itinerary, timers):
    metadata = TripMetadata(destination="Tokyo", start_date="2030-05-01", end_date="2030-05-03")

    store.set_generated(tokyo_itinerary, [], metadata)

    state = store.state
    assert state.is_dirty
    assert state.current_itinerary_id is None
    assert state.current_itinerary.title == "Tokyo Highlights"
    assert state.metadata == metadata
    assert len(timers.active) == 1


def test_clear_itinerary_resets_and_cancels(store, make_document, timers):
    store.update_editor_data(make_document())

    store.clear_itinerary()

    assert store.state.editor_data is None
    assert store.state.status == IDLE
    assert timers.active == []


def test_select_place_and_directions(store):
    store.select_place("place_1_0", 0)
    assert store.state.selected_place == {"uid": "place_1_0", "dayIndex": 0}

    store.select_place(None)
    assert store.state.selected_place is None

    store.set_directions_data([DirectionsData(day_index=1, color="#10B981", directions_result={"routes": []})])
    assert store.state.directions_data[0].day_index == 1


def test_subscribers_get_snapshots_until_unsubscribed(store, make_document):
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.update_editor_data(make_document())
    unsubscribe()
    store.select_place("place_1_0")

    assert len(seen) == 1
    assert seen[0].is_dirty
    assert seen[0].to_dict()["isDirty"] is True


def test_failing_listener_does_not_break_the_store(store, make_document):
    def broken(state):
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    store.update_editor_data(make_document())

    assert store.state.is_dirty


def test_close_cancels_pending_save(store, make_document, timers):
    store.update_editor_data(make_document())
    pending = timers.active[0]

    store.close()

    assert pending.cancelled
    store.update_editor_data(make_document(note="after close"))
    assert timers.active == []
    assert store.save_now() is None


def test_clear_during_save_keeps_the_empty_state(repository, make_document, timers):
    store = ItineraryStore(repository, USER, debounce_ms=10, timer_factory=timers)
    real_save = repository.save

    def save_then_clear(user_id, request):
        response = real_save(user_id, request)
        store.clear_itinerary()
        return response

    repository.save = save_then_clear
    store.update_editor_data(make_document())

    assert store.save_now().success
    assert store.state == ItineraryState()
    assert timers.active == []
    store.close()


def test_trip_generated_during_save_gets_its_own_row(repository, make_document, tokyo_itinerary, timers):
    store = ItineraryStore(repository, USER, debounce_ms=10, timer_factory=timers)
    real_save = repository.save

    def save_then_generate(user_id, request):
        response = real_save(user_id, request)
        store.set_generated(tokyo_itinerary, [])
        return response

    repository.save = save_then_generate
    store.update_editor_data(make_document(title="Old trip"))
    old = store.save_now()
    repository.save = real_save

    assert store.state.current_itinerary_id is None
    assert store.state.is_dirty
    timers.fire_active()

    assert store.state.current_itinerary_id not in (None, old.id)
    assert sorted(record.title for record in repository.list(USER)) == ["Old trip", "Tokyo Highlights"]
    store.close()


def test_set_generated_keeps_the_given_document(store, tokyo_itinerary):
    document = itinerary_to_document(tokyo_itinerary)

    store.set_generated(tokyo_itinerary, [], document=document)

    assert store.state.editor_data is document


def test_unprojectable_document_leaves_state_untouched(store, make_document, monkeypatch):
    store.update_editor_data(make_document(title="Before"))

    def broken(document):
        raise ValueError("cannot project")

    monkeypatch.setattr(state_store, "document_to_itinerary", broken)
    with pytest.raises(ValueError):
        store.update_editor_data(make_document(title="After"))

    state = store.state
    assert state.editor_data.blocks[0].text == "Before"
    assert state.current_itinerary.title == "Before"
    assert state.content_hash == generate_content_hash(make_document(title="Before"))


def test_non_numeric_coordinates_keep_views_in_step(store, make_document):
    raw = make_document(title="After").to_dict()
    raw["blocks"][3]["data"]["lat"] = "abc"

    store.update_editor_data(BlockDocument.from_dict(raw))

    state = store.state
    assert state.editor_data.blocks[0].text == "After"
    assert state.current_itinerary.title == "After"


def test_directions_change_is_saved_with_unchanged_content(store, repository, make_document, timers):
    store.update_editor_data(make_document())
    timers.fire_active()
    saved_id = store.state.current_itinerary_id

    store.set_directions_data([DirectionsData(day_index=0, color="#3B82F6", directions_result={"routes": []})])
    assert store.state.is_dirty
    timers.fire_active()

    assert not store.state.is_dirty
    assert [d.color for d in repository.load(USER, saved_id).directions] == ["#3B82F6"]


def test_directions_without_an_open_itinerary_do_not_schedule(store, timers):
    store.set_directions_data([DirectionsData(day_index=0, color="#3B82F6", directions_result={"routes": []})])

    assert not store.state.is_dirty
    assert timers.active == []


def test_selected_place_day_defaults_to_its_uid(store):
    store.select_place("place_2_1")
    assert store.state.selected_place == {"uid": "place_2_1", "dayIndex": 1}

    store.select_place("block_1", 3)
    assert store.state.selected_place == {"uid": "block_1", "dayIndex": 3}
