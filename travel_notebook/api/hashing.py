# travel_notebook/api/hashing.py
"""Content fingerprint of a block document.

The hash only covers what should trigger a save: block ids, UI flags,
expiring thumbnail URLs and a transient ``loading`` status are left out, and
blocks that carry no content yet are ignored altogether.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from typing import Any, Dict, Union

from travel_notebook.api.models import BlockDocument

logger = logging.getLogger(__name__)

UI_STATE_KEYS = ("expanded", "collapsed", "hasBeenSearched", "thumbnailUrl")
TRANSIENT_STATUS = "loading"
PLACE_BLOCK_TYPES = ("place", "hotel")
TEXT_BLOCK_TYPES = ("paragraph", "header")

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Strip HTML tags and collapse whitespace for comparison."""
    text = _TAG_RE.sub("", text)
    text = text.replace("&nbsp;", " ").replace("\u00a0", " ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def exclude_ui_state(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return the content-relevant part of a block's data."""
    cleaned = {key: value for key, value in data.items() if key not in UI_STATE_KEYS}

    # Only the loading status is transient; found vs free-text is content.
    if cleaned.get("status") == TRANSIENT_STATUS:
        del cleaned["status"]

    if isinstance(cleaned.get("text"), str):
        result = {"text": normalize_text(cleaned["text"])}
        if cleaned.get("level"):
            result["level"] = cleaned["level"]
        return result

    return cleaned


def is_empty_block(block: Dict[str, Any]) -> bool:
    """True for skeleton blocks that should never trigger a save."""
    data = block.get("data")
    if not data:
        return True

    block_type = block.get("type")
    if block_type in PLACE_BLOCK_TYPES:
        return not data.get("name") or (data.get("status") == "idle" and not data.get("placeId"))

    if block_type == "day":
        places = data.get("places") or []
        return not places or all(not (place or {}).get("name") for place in places)

    if block_type in TEXT_BLOCK_TYPES:
        text = data.get("text")
        return not isinstance(text, str) or not normalize_text(text)

    return False


def generate_content_hash(document: Union[BlockDocument, Dict[str, Any], None]) -> str:
    """SHA-256 over the document's semantic content.

    Accepts a decoded ``BlockDocument`` or raw editor JSON. Raw input without
    a ``blocks`` list hashes to an empty string.
    """
    if isinstance(document, dict):
        if not isinstance(document.get("blocks"), list):
            logger.warning("generate_content_hash: invalid editor data provided")
            return ""
        document = BlockDocument.from_dict(document)
    elif not isinstance(document, BlockDocument):
        logger.warning("generate_content_hash: invalid editor data provided")
        return ""

    payload = document.to_dict()
    filtered_blocks = [
        # Ids are left out on purpose: identity must not affect equality.
        {"type": block.get("type") or "", "data": exclude_ui_state(block.get("data") or {})}
        for block in payload["blocks"]
        if not is_empty_block(block)
    ]

    canonical = json.dumps(
        {"blocks": filtered_blocks, "version": payload.get("version") or ""},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def is_content_equal(first, second) -> bool:
    """Compare two documents by content hash."""
    return generate_content_hash(first) == generate_content_hash(second)


__all__ = [
    "generate_content_hash",
    "is_content_equal",
    "is_empty_block",
    "exclude_ui_state",
    "normalize_text",
]
