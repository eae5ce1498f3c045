import copy

import pytest

from travel_notebook.api.hashing import (
    exclude_ui_state,
    generate_content_hash,
    is_content_equal,
    is_empty_block,
    normalize_text,
)

BASE = {
    "version": "2.28.0",
    "blocks": [
        {"id": "a", "type": "header", "data": {"text": "Kyoto Days", "level": 1}},
        {"id": "b", "type": "paragraph", "data": {"text": "Temples and tea."}},
        {"id": "c", "type": "place", "data": {
            "uid": "place_1_0",
            "name": "Fushimi Inari",
            "lat": 34.9671,
            "lng": 135.7727,
            "placeId": "ChIJIW0uPRUPAWARvs9X4ZaDGHM",
            "status": "found",
        }},
    ],
}


def _with_place_data(**changes):
    document = copy.deepcopy(BASE)
    document["blocks"][2]["data"].update(changes)
    return document


@pytest.mark.parametrize("noise", [
    {"expanded": True},
    {"collapsed": False},
    {"hasBeenSearched": True},
    {"thumbnailUrl": "https://example.com/thumb.jpg"},
])
def test_hash_ignores_transient_noise(noise):
    assert generate_content_hash(_with_place_data(**noise)) == generate_content_hash(BASE)


def test_loading_status_hashes_like_no_status():
    without_status = copy.deepcopy(BASE)
    del without_status["blocks"][2]["data"]["status"]

    assert generate_content_hash(_with_place_data(status="loading")) == generate_content_hash(without_status)


def test_hash_changes_between_non_loading_statuses():
    found = generate_content_hash(BASE)
    free_text = generate_content_hash(_with_place_data(status="free-text"))
    idle = generate_content_hash(_with_place_data(status="idle"))

    assert len({found, free_text, idle}) == 3


def test_hash_ignores_block_ids():
    renamed = copy.deepcopy(BASE)
    for index, block in enumerate(renamed["blocks"]):
        block["id"] = f"block_fresh_{index}"

    assert generate_content_hash(renamed) == generate_content_hash(BASE)


def test_empty_blocks_hash_like_an_empty_document():
    skeleton = {
        "version": "2.28.0",
        "blocks": [
            {"id": "p", "type": "place", "data": {"name": "", "lat": 0, "lng": 0}},
            {"id": "d", "type": "day", "data": {"dayNumber": 1, "places": []}},
        ],
    }

    assert generate_content_hash(skeleton) == generate_content_hash({"version": "2.28.0", "blocks": []})


def test_text_is_compared_after_normalization():
    spaced = copy.deepcopy(BASE)
    spaced["blocks"][1]["data"]["text"] = "<b>Temples</b>   and&nbsp;tea."

    assert is_content_equal(spaced, BASE)


def test_content_edits_change_the_hash():
    edited = copy.deepcopy(BASE)
    edited["blocks"][1]["data"]["text"] = "Temples and sake."

    assert not is_content_equal(edited, BASE)


def test_invalid_input_hashes_to_empty_string():
    assert generate_content_hash({"blocks": "nope"}) == ""
    assert generate_content_hash(None) == ""


def test_exclude_ui_state_keeps_only_text_and_level():
    assert exclude_ui_state({"text": " Hi ", "level": 2, "expanded": True}) == {"text": "Hi", "level": 2}


def test_idle_place_without_place_id_is_empty():
    assert is_empty_block({"type": "place", "data": {"name": "Somewhere", "status": "idle"}})
    assert not is_empty_block({"type": "place", "data": {"name": "Somewhere", "status": "free-text"}})


def test_normalize_text():
    assert normalize_text("<p>a\n\tb</p>") == "a b"
