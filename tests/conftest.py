import pytest

from main import create_app
from travel_notebook.api.models import BlockDocument
from travel_notebook.api.parser import parse_itinerary_response
from travel_notebook.api.services.session_manager import set_session_manager
from travel_notebook.api.services.storage_service import ItineraryRepository

TOKYO_TEXT = """
ITINERARY TITLE: **Tokyo Highlights**

DAY 1 - 2030-05-01 - Old Tokyo **Asakusa**
Temples and traditional streets.

**Senso-ji Temple** (lat: 35.7148, lng: 139.7967)
Tokyo's oldest temple, known as [[Senso-ji]], with a lively market street.

**Tokyo Skytree** (lat: 35.7101, lng: 139.8107)
Panoramic views from the tallest tower in Japan.

DAY 2 - 2030-05-02 - Modern Tokyo
Neon lights and shopping.

**Shibuya Crossing** (lat: 35.6595, lng: 139.7005)
The famous scramble crossing.
"""


class FakeTimer:
    """Stands in for ``threading.Timer``; fired by hand."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        assert not self.cancelled, "fired a cancelled timer"
        self.function()


class TimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if t.started and not t.cancelled]

    def fire_active(self):
        active = self.active
        assert len(active) == 1, f"expected one pending timer, found {len(active)}"
        active[0].fire()


@pytest.fixture
def tokyo_text():
    return TOKYO_TEXT


@pytest.fixture
def tokyo_itinerary():
    return parse_itinerary_response(TOKYO_TEXT, "Tokyo", "2030-05-01", 3)


@pytest.fixture
def repository(tmp_path):
    return ItineraryRepository(database_path=str(tmp_path / "itineraries.db"))


@pytest.fixture
def timers():
    return TimerFactory()


@pytest.fixture
def make_document():
    """Small but non-empty editor document."""

    def _make(title="Trip", note="First day"):
        return BlockDocument.from_dict({
            "version": "2.28.0",
            "blocks": [
                {"id": "h1", "type": "header", "data": {"text": title, "level": 1}},
                {"id": "d1", "type": "day", "data": {
                    "dayNumber": 1,
                    "date": "2030-05-01",
                    "title": "Arrival",
                    "places": [{"uid": "place_1_0", "name": "Senso-ji Temple"}],
                }},
                {"id": "p1", "type": "paragraph", "data": {"text": note}},
                {"id": "pl1", "type": "place", "data": {
                    "uid": "place_1_0",
                    "name": "Senso-ji Temple",
                    "lat": 35.7148,
                    "lng": 139.7967,
                    "placeId": "ChIJ8T1GpMGOGGARDYGSgpooDWw",
                    "status": "found",
                }},
            ],
        })

    return _make


@pytest.fixture
def app_and_socketio(repository):
    app, socketio = create_app(repository=repository, testing=True)
    yield app, socketio
    set_session_manager(None)


@pytest.fixture
def client(app_and_socketio):
    app, _ = app_and_socketio
    return app.test_client()


@pytest.fixture
def signed_in_client(client):
    with client.session_transaction() as sess:
        sess["user_id"] = "user-1"
    return client
