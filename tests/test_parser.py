import pytest

from travel_notebook.api.models import PlaceStatus
from travel_notebook.api.parser import (
    PLACEHOLDER_DESCRIPTION,
    calculate_date_for_day,
    extract_short_name,
    parse_itinerary_response,
)


def test_end_to_end_tokyo_dash():
    text = "\n".join([
        "ITINERARY TITLE: Tokyo Dash",
        "DAY 1 - 2024-03-15 - Arrival",
        "**Senso-ji Temple** (lat: 35.71464, lng: 139.79667)",
        "Discover the ancient [[Senso-ji]] temple.",
    ])

    itinerary = parse_itinerary_response(text, "Tokyo", "2024-03-15", 1)

    assert itinerary.title == "Tokyo Dash"
    assert itinerary.destination == "Tokyo"
    assert len(itinerary.days) == 1
    day = itinerary.days[0]
    assert day.date == "2024-03-15"
    assert day.title == "Arrival"
    assert len(day.places) == 1
    place = day.places[0]
    assert place.name == "Senso-ji Temple"
    assert place.lat == 35.71464
    assert place.lng == 139.79667
    assert place.paragraph == "Discover the ancient temple."
    assert place.short_name == "Senso-ji"
    assert place.status == PlaceStatus.IDLE


@pytest.mark.parametrize("total_days", [1, 2, 3, 5])
def test_day_count_always_matches_total_days(tokyo_text, total_days):
    itinerary = parse_itinerary_response(tokyo_text, "Tokyo", "2030-05-01", total_days)

    assert len(itinerary.days) == total_days
    assert [day.day_number for day in itinerary.days] == list(range(1, total_days + 1))


def test_missing_days_are_padded_with_placeholders(tokyo_itinerary):
    padded = tokyo_itinerary.days[2]

    assert padded.title == "Day 3"
    assert padded.date == "2030-05-03"
    assert padded.description == PLACEHOLDER_DESCRIPTION
    assert padded.places == ()


def test_no_day_headers_gives_only_placeholders():
    itinerary = parse_itinerary_response("The model rambled instead.", "Lisbon", "2030-06-10", 2)

    assert itinerary.title == "Lisbon Adventure"
    assert [day.date for day in itinerary.days] == ["2030-06-10", "2030-06-11"]
    assert all(day.places == () for day in itinerary.days)


def test_day_headers_and_places(tokyo_itinerary):
    assert tokyo_itinerary.title == "Tokyo Highlights"

    day_one, day_two, _ = tokyo_itinerary.days
    assert day_one.title == "Old Tokyo Asakusa"
    assert day_one.description == "Temples and traditional streets."
    assert [p.name for p in day_one.places] == ["Senso-ji Temple", "Tokyo Skytree"]
    assert day_one.places[0].short_name == "Senso-ji"
    assert day_one.places[0].paragraph == (
        "Tokyo's oldest temple, known as, with a lively market street."
    )
    assert day_one.places[1].short_name == ""
    assert [p.name for p in day_two.places] == ["Shibuya Crossing"]


def test_region_is_inherited_by_following_days(tokyo_itinerary):
    regions = [day.region for day in tokyo_itinerary.days]

    assert regions == ["Asakusa", "Asakusa", "Asakusa"]


def test_region_marker_on_later_day_is_inherited():
    text = "\n".join([
        "DAY 1 - 2030-05-01 - Arrival",
        "DAY 2 - 2030-05-02 - Into the hills **Hakone**",
        "DAY 3 - 2030-05-03 - Onsen day",
    ])

    itinerary = parse_itinerary_response(text, "Japan", "2030-05-01", 3)

    assert itinerary.days[0].region is None
    assert itinerary.days[1].region == "Hakone"
    assert itinerary.days[2].region == itinerary.days[1].region


def test_extra_days_are_truncated(tokyo_text):
    itinerary = parse_itinerary_response(tokyo_text, "Tokyo", "2030-05-01", 1)

    assert len(itinerary.days) == 1
    assert itinerary.total_places == 2


def test_skipped_day_numbers_are_renumbered():
    text = "\n".join([
        "DAY 1 - 2030-05-01 - First",
        "DAY 3 - 2030-05-03 - Third",
    ])

    itinerary = parse_itinerary_response(text, "Rome", "2030-05-01", 2)

    assert [day.day_number for day in itinerary.days] == [1, 2]
    assert itinerary.days[1].title == "Third"
    assert itinerary.days[1].date == "2030-05-03"


def test_missing_date_falls_back_to_start_date_offset():
    itinerary = parse_itinerary_response("DAY 2 - Exploring", "Rome", "2030-05-01", 2)

    assert itinerary.days[0].date == "2030-05-02"
    assert itinerary.days[0].title == "Exploring"


def test_malformed_coordinates_drop_the_place():
    text = "\n".join([
        "DAY 1 - 2030-05-01 - Arrival",
        "**Broken Place** (lat: 35.1.2, lng: 139.7)",
        "This paragraph has nowhere to go.",
        "**Good Place** (lat: 35.1, lng: 139.7)",
        "Worth a visit.",
    ])

    itinerary = parse_itinerary_response(text, "Tokyo", "2030-05-01", 1)

    places = itinerary.days[0].places
    assert [p.name for p in places] == ["Good Place"]
    assert places[0].paragraph == "Worth a visit."


def test_place_before_any_day_is_ignored():
    text = "**Stray** (lat: 1.0, lng: 2.0)\nDAY 1 - 2030-05-01 - Arrival"

    itinerary = parse_itinerary_response(text, "Tokyo", "2030-05-01", 1)

    assert itinerary.total_places == 0


def test_empty_input_never_raises():
    itinerary = parse_itinerary_response("", "Oslo", "2030-05-01", 1)

    assert itinerary.title == "Oslo Adventure"
    assert len(itinerary.days) == 1


def test_extract_short_name_without_marker():
    assert extract_short_name("Just  a   paragraph.") == ("Just a paragraph.", "")


def test_calculate_date_for_day_crosses_month():
    assert calculate_date_for_day("2030-01-30", 3) == "2030-02-02"
