from dataclasses import replace

import pytest

from travel_notebook.api.converter import (
    day_number_from_uid,
    document_to_itinerary,
    group_blocks_by_day,
    itinerary_to_document,
    make_place_uid,
    sequence_from_uid,
    update_place_in_document,
    validate_document,
)
from travel_notebook.api.models import Block, BlockDocument, DayBlock, HeaderBlock, ParagraphBlock, PlaceBlock


def _shape(itinerary):
    return [
        [(place.name, place.lat, place.lng) for place in day.places]
        for day in itinerary.days
    ]


def test_round_trip_keeps_days_places_and_coordinates(tokyo_itinerary):
    restored = document_to_itinerary(itinerary_to_document(tokyo_itinerary))

    assert len(restored.days) == len(tokyo_itinerary.days)
    assert _shape(restored) == _shape(tokyo_itinerary)
    assert restored.title == tokyo_itinerary.title
    assert restored.destination == "Tokyo"


def test_round_trip_keeps_day_and_place_text(tokyo_itinerary):
    restored = document_to_itinerary(itinerary_to_document(tokyo_itinerary))

    for original, day in zip(tokyo_itinerary.days, restored.days):
        assert (day.day_number, day.date, day.title) == (original.day_number, original.date, original.title)
        assert day.description == original.description
        assert day.region == original.region
        assert [p.paragraph for p in day.places] == [p.paragraph for p in original.places]
        assert [p.short_name for p in day.places] == [p.short_name for p in original.places]


def test_second_round_trip_is_stable(tokyo_itinerary):
    once = document_to_itinerary(itinerary_to_document(tokyo_itinerary))
    twice = document_to_itinerary(itinerary_to_document(once))

    assert _shape(twice) == _shape(once)
    assert [p.uid for d in twice.days for p in d.places] == [p.uid for d in once.days for p in d.places]


def test_document_layout(tokyo_itinerary):
    document = itinerary_to_document(tokyo_itinerary, version="2.28.0")

    assert document.version == "2.28.0"
    assert isinstance(document.blocks[0], HeaderBlock)
    assert document.blocks[0].text == "Tokyo Highlights"
    assert document.blocks[1].text == "3-day trip to Tokyo"
    assert isinstance(document.blocks[2], DayBlock)
    assert [s["name"] for s in document.blocks[2].places] == ["Senso-ji Temple", "Tokyo Skytree"]
    assert len({block.id for block in document.blocks}) == len(document.blocks)


def test_place_paragraph_is_linked(tokyo_itinerary):
    document = itinerary_to_document(tokyo_itinerary)
    by_id = {block.id: block for block in document.blocks}

    senso_ji = next(b for b in document.blocks if isinstance(b, PlaceBlock) and b.name == "Senso-ji Temple")
    linked = by_id[senso_ji.linked_paragraph_id]
    assert isinstance(linked, ParagraphBlock)
    assert linked.text.startswith("Tokyo's oldest temple")
    assert senso_ji.uid == "place_1_0"


def test_group_membership_is_positional():
    document = BlockDocument.from_dict({"blocks": [
        {"id": "h", "type": "header", "data": {"text": "Trip"}},
        {"id": "d1", "type": "day", "data": {"dayNumber": 1}},
        {"id": "p1", "type": "place", "data": {"name": "A"}},
        {"id": "d2", "type": "day", "data": {"dayNumber": 7}},
        {"id": "p2", "type": "hotel", "data": {"name": "B"}},
        {"id": "x", "type": "image", "data": {"url": "u"}},
    ]})

    preamble, groups = group_blocks_by_day(document)

    assert [b.id for b in preamble] == ["h"]
    assert [g.index for g in groups] == [0, 1]
    assert [b.id for b in groups[0].blocks] == ["p1"]
    assert [b.id for b in groups[1].blocks] == ["p2", "x"]
    assert [b.name for b in groups[1].place_blocks] == ["B"]


def test_moved_place_follows_its_new_day(tokyo_itinerary):
    document = itinerary_to_document(tokyo_itinerary)
    skytree = next(b for b in document.blocks if isinstance(b, PlaceBlock) and b.name == "Tokyo Skytree")
    blocks = [b for b in document.blocks if b is not skytree]
    blocks.append(skytree)

    restored = document_to_itinerary(replace(document, blocks=blocks))

    assert [p.name for p in restored.days[0].places] == ["Senso-ji Temple"]
    assert restored.days[2].places[-1].name == "Tokyo Skytree"


def test_unknown_blocks_survive_json_round_trip():
    payload = {"version": "1", "blocks": [{"id": "x", "type": "checklist", "data": {"items": ["a"]}}]}

    assert BlockDocument.from_dict(payload).to_dict() == payload


def test_update_place_in_document(tokyo_itinerary):
    document = itinerary_to_document(tokyo_itinerary)

    updated = update_place_in_document(document, "place_1_1", {"placeId": "abc", "lat": 35.71, "lng": 139.81})

    skytree = next(b for b in updated.blocks if isinstance(b, PlaceBlock) and b.uid == "place_1_1")
    assert skytree.status == "found"
    assert skytree.place_id == "abc"
    day_one = next(b for b in updated.blocks if isinstance(b, DayBlock))
    assert day_one.places[1]["lat"] == 35.71
    original = next(b for b in document.blocks if isinstance(b, PlaceBlock) and b.uid == "place_1_1")
    assert original.place_id == ""


def test_validate_document(tokyo_itinerary):
    assert validate_document(itinerary_to_document(tokyo_itinerary)) == []
    assert len(validate_document(BlockDocument())) == 2

@pytest.mark.parametrize("uid, day_number, sequence", [
    (make_place_uid(3, 1), 3, 1),
    ("place_12_40", 12, 40),
    ("place_2_hotel", 2, None),
    ("block_123_abc", None, None),
    (None, None, None),
])
def test_place_uid_parts(uid, day_number, sequence):
    assert day_number_from_uid(uid) == day_number
    assert sequence_from_uid(uid) == sequence


def _place_document(**place_data):
    return BlockDocument.from_dict({"blocks": [
        {"id": "h1", "type": "header", "data": {"text": "Trip"}},
        {"id": "d1", "type": "day", "data": {"dayNumber": 1}},
        {"id": "pl1", "type": "place", "data": {"uid": "place_1_0", "name": "Senso-ji Temple", **place_data}},
    ]})


def test_place_numbers_are_coerced_at_decode():
    place = _place_document(lat="35.7148", lng="abc", rating=True).blocks[2]

    assert place.lat == 35.7148
    assert place.lng is None
    assert place.rating is None


def test_unparseable_coordinates_still_project():
    itinerary = document_to_itinerary(_place_document(lat="abc", lng=float("nan")))

    place = itinerary.days[0].places[0]
    assert (place.name, place.lat, place.lng) == ("Senso-ji Temple", 0.0, 0.0)


def test_update_place_coerces_detail_numbers():
    updated = update_place_in_document(_place_document(lat=1, lng=2), "place_1_0", {"lat": "35.71", "lng": "bad"})

    place = updated.blocks[2]
    assert (place.lat, place.lng) == (35.71, None)


def test_block_base_is_abstract():
    with pytest.raises(TypeError):
        Block(id="b1", type="paragraph")
