# travel_notebook/api/services/storage_service.py
"""SQLite persistence for itineraries and their directions.

Every operation is scoped to a user id and refuses to run without one.
"""

import json
import logging
import sqlite3
import time
import uuid
from contextlib import closing, contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from travel_notebook.api.config import get_database_path
from travel_notebook.api.errors import AuthenticationError, PersistenceError
from travel_notebook.api.hashing import generate_content_hash
from travel_notebook.api.models import BlockDocument, DirectionsData, TripMetadata

logger = logging.getLogger(__name__)

CONFLICT_RETRY_DELAY = 0.1  # seconds

SCHEMA = """
CREATE TABLE IF NOT EXISTS itineraries (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT,
    editor_data TEXT NOT NULL,
    version TEXT,
    hash TEXT NOT NULL,
    destination TEXT,
    start_date TEXT,
    end_date TEXT,
    interests TEXT,
    travel_style TEXT,
    additional_notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_itineraries_user ON itineraries (user_id, updated_at);

CREATE TABLE IF NOT EXISTS itinerary_directions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    itinerary_id TEXT NOT NULL,
    day_index INTEGER NOT NULL,
    color TEXT NOT NULL,
    directions_result TEXT NOT NULL,
    FOREIGN KEY (itinerary_id) REFERENCES itineraries (id) ON DELETE CASCADE
);
"""


@dataclass
class SaveRequest:
    """What the editor session sends to be persisted."""

    editor_data: BlockDocument
    id: Optional[str] = None
    title: Optional[str] = None
    directions: Optional[List[Any]] = None
    metadata: Optional[TripMetadata] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SaveRequest":
        metadata = payload.get("metadata")
        return cls(
            editor_data=BlockDocument.from_dict(payload.get("editorData")),
            id=payload.get("id") or None,
            title=payload.get("title"),
            directions=payload.get("directions"),
            metadata=TripMetadata.from_dict(metadata) if isinstance(metadata, dict) else None,
        )


@dataclass
class SaveResponse:
    id: str
    success: bool
    unchanged: bool = False
    conflict_resolved: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {"id": self.id, "success": self.success}
        if self.unchanged:
            payload["unchanged"] = True
        if self.conflict_resolved:
            payload["conflictResolved"] = True
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class ItineraryRecord:
    """A stored itinerary as returned by ``load`` and ``list``."""

    id: str
    title: Optional[str]
    editor_data: BlockDocument
    created_at: str
    updated_at: str
    metadata: Optional[TripMetadata] = None
    directions: List[DirectionsData] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "title": self.title,
            "editorData": self.editor_data.to_dict(),
            "directions": [d.to_dict() for d in self.directions],
            "createdAt": self.created_at,
            "lastUpdated": self.updated_at,
        }
        if self.metadata:
            payload.update(self.metadata.to_dict())
        return payload


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _direction_payload(direction: Any) -> Optional[Dict[str, Any]]:
    """Accept ``DirectionsData`` or its JSON form; ``None`` when invalid."""
    if isinstance(direction, DirectionsData):
        direction = direction.to_dict()
    if not isinstance(direction, dict):
        return None

    day_index = direction.get("dayIndex")
    if not isinstance(day_index, int) or isinstance(day_index, bool) or day_index < 0:
        logger.warning(f"Skipping direction with invalid dayIndex: {day_index!r}")
        return None
    color = direction.get("color")
    if not color or not isinstance(color, str):
        logger.warning(f"Skipping direction with invalid color: {color!r}")
        return None
    if not direction.get("directionsResult"):
        logger.warning("Skipping direction with no directionsResult")
        return None
    return direction


class ItineraryRepository:
    """Relational store for itineraries, scoped by user."""

    def __init__(self, database_path: Optional[str] = None):
        self.database_path = database_path or get_database_path()
        self.ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _connection(self):
        """Connection whose database errors surface as ``PersistenceError``."""
        conn = self._connect()
        try:
            yield conn
        except sqlite3.DatabaseError as e:
            logger.error(f"Database error: {e}")
            raise PersistenceError(f"Database error: {e}") from e
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with closing(self._connect()) as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @staticmethod
    def _require_user(user_id: Optional[str]) -> None:
        if not user_id:
            raise AuthenticationError()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, user_id: str, request: SaveRequest) -> SaveResponse:
        """Insert or update an itinerary unless its content is unchanged.

        Directions carried by the request are stored either way.

        An integrity conflict is retried once after a short pause and, on
        success, reported as ``conflict_resolved``.
        """
        self._require_user(user_id)
        logger.info(
            f"Saving itinerary {request.id or '(new)'}: {len(request.editor_data.blocks)} blocks"
        )

        try:
            return self._save(user_id, request)
        except sqlite3.IntegrityError as e:
            logger.warning(f"Conflict saving itinerary {request.id}: {e}, retrying once")
            time.sleep(CONFLICT_RETRY_DELAY)
            try:
                response = self._save(user_id, request)
            except sqlite3.DatabaseError as retry_error:
                logger.error(f"Conflict resolution failed: {retry_error}")
                return SaveResponse(
                    id=request.id or "",
                    success=False,
                    error="Conflict resolution failed. Please refresh and try again.",
                )
            response.conflict_resolved = True
            return response
        except sqlite3.DatabaseError as e:
            logger.error(f"Error saving itinerary: {e}")
            return SaveResponse(id=request.id or "", success=False, error=str(e))

    def _save(self, user_id: str, request: SaveRequest) -> SaveResponse:
        content_hash = generate_content_hash(request.editor_data)
        editor_json = json.dumps(request.editor_data.to_dict())
        metadata = request.metadata.to_dict() if request.metadata else {}
        now = _now()

        with closing(self._connect()) as conn:
            with conn:
                itinerary_id = request.id
                existing = None
                if itinerary_id:
                    existing = conn.execute(
                        "SELECT hash FROM itineraries WHERE id = ? AND user_id = ?",
                        (itinerary_id, user_id),
                    ).fetchone()

                if existing is not None:
                    if existing["hash"] == content_hash:
                        logger.info(f"Content unchanged, skipping save of {itinerary_id}")
                        # Directions live outside the content hash
                        if request.directions:
                            self._replace_directions(conn, itinerary_id, request.directions)
                        return SaveResponse(id=itinerary_id, success=True, unchanged=True)

                    # Metadata fields left out of the request keep their stored values
                    conn.execute(
                        """
                        UPDATE itineraries SET
                            title = ?, editor_data = ?, version = ?, hash = ?,
                            destination = COALESCE(?, destination),
                            start_date = COALESCE(?, start_date),
                            end_date = COALESCE(?, end_date),
                            interests = COALESCE(?, interests),
                            travel_style = COALESCE(?, travel_style),
                            additional_notes = COALESCE(?, additional_notes),
                            updated_at = ?
                        WHERE id = ? AND user_id = ?
                        """,
                        (
                            request.title, editor_json, request.editor_data.version, content_hash,
                            metadata.get("destination"), metadata.get("startDate"), metadata.get("endDate"),
                            json.dumps(metadata["interests"]) if "interests" in metadata else None,
                            metadata.get("travelStyle"), metadata.get("additionalNotes"),
                            now, itinerary_id, user_id,
                        ),
                    )
                else:
                    if itinerary_id:
                        logger.info(f"Itinerary {itinerary_id} not found, creating it with that id")
                    else:
                        itinerary_id = str(uuid.uuid4())
                    conn.execute(
                        """
                        INSERT INTO itineraries (
                            id, user_id, title, editor_data, version, hash,
                            destination, start_date, end_date, interests, travel_style,
                            additional_notes, created_at, updated_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            itinerary_id, user_id, request.title, editor_json,
                            request.editor_data.version, content_hash,
                            metadata.get("destination") or "Unknown Destination",
                            metadata.get("startDate"), metadata.get("endDate"),
                            json.dumps(metadata.get("interests") or []),
                            metadata.get("travelStyle") or "mid-range",
                            metadata.get("additionalNotes"),
                            now, now,
                        ),
                    )

                if request.directions:
                    self._replace_directions(conn, itinerary_id, request.directions)

        logger.info(f"Itinerary saved successfully: {itinerary_id}")
        return SaveResponse(id=itinerary_id, success=True)

    @staticmethod
    def _replace_directions(conn: sqlite3.Connection, itinerary_id: str, directions: List[Any]) -> None:
        conn.execute("DELETE FROM itinerary_directions WHERE itinerary_id = ?", (itinerary_id,))
        valid = [payload for payload in map(_direction_payload, directions) if payload is not None]
        if not valid:
            logger.warning("No valid directions to save after filtering")
            return

        conn.executemany(
            "INSERT INTO itinerary_directions (itinerary_id, day_index, color, directions_result) "
            "VALUES (?, ?, ?, ?)",
            [
                (itinerary_id, d["dayIndex"], d["color"], json.dumps(d["directionsResult"]))
                for d in valid
            ],
        )
        logger.debug(f"Saved {len(valid)} valid directions (filtered from {len(directions)})")

    def update_details(self, user_id: str, itinerary_id: str, title: str) -> None:
        """Rename an itinerary without touching its content."""
        self._require_user(user_id)
        with self._connection() as conn:
            with conn:
                cursor = conn.execute(
                    "UPDATE itineraries SET title = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                    (title, _now(), itinerary_id, user_id),
                )
        if cursor.rowcount == 0:
            raise PersistenceError(f"Itinerary {itinerary_id} not found", not_found=True)

    def delete(self, user_id: str, itinerary_id: str) -> None:
        self._require_user(user_id)
        with self._connection() as conn:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM itineraries WHERE id = ? AND user_id = ?", (itinerary_id, user_id)
                )
        if cursor.rowcount == 0:
            raise PersistenceError(f"Itinerary {itinerary_id} not found", not_found=True)
        logger.info(f"Deleted itinerary {itinerary_id}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _decode_document(raw: str, itinerary_id: str) -> BlockDocument:
        try:
            return BlockDocument.from_dict(json.loads(raw))
        except (TypeError, ValueError) as e:
            logger.error(f"Corrupt editor data for itinerary {itinerary_id}: {e}")
            return BlockDocument()

    @staticmethod
    def _decode_metadata(row: sqlite3.Row) -> TripMetadata:
        try:
            interests = json.loads(row["interests"] or "[]")
        except ValueError:
            interests = []
        if not isinstance(interests, list):
            interests = []
        return TripMetadata(
            destination=row["destination"] or "",
            start_date=row["start_date"] or "",
            end_date=row["end_date"] or "",
            interests=tuple(i for i in interests if isinstance(i, str)),
            travel_style=row["travel_style"] or "mid-range",
            additional_notes=row["additional_notes"],
        )

    def _record(self, row: sqlite3.Row) -> ItineraryRecord:
        return ItineraryRecord(
            id=row["id"],
            title=row["title"],
            editor_data=self._decode_document(row["editor_data"], row["id"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            metadata=self._decode_metadata(row),
        )

    def load(self, user_id: str, itinerary_id: str) -> ItineraryRecord:
        """Load an itinerary with its directions.

        Raises:
            AuthenticationError: If ``user_id`` is empty
            PersistenceError: If the itinerary does not exist for this user
        """
        self._require_user(user_id)
        logger.info(f"Loading itinerary {itinerary_id}")
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM itineraries WHERE id = ? AND user_id = ?", (itinerary_id, user_id)
            ).fetchone()
            if row is None:
                raise PersistenceError(f"Itinerary {itinerary_id} not found", not_found=True)
            direction_rows = conn.execute(
                "SELECT day_index, color, directions_result FROM itinerary_directions "
                "WHERE itinerary_id = ? ORDER BY day_index",
                (itinerary_id,),
            ).fetchall()

        record = self._record(row)
        for direction in direction_rows:
            try:
                result = json.loads(direction["directions_result"])
            except ValueError as e:
                logger.warning(f"Skipping corrupt directions for day {direction['day_index']}: {e}")
                continue
            record.directions.append(DirectionsData(
                day_index=direction["day_index"],
                color=direction["color"],
                directions_result=result,
            ))
        return record

    def list(self, user_id: str) -> List[ItineraryRecord]:
        """All of a user's itineraries, most recently updated first."""
        self._require_user(user_id)
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM itineraries WHERE user_id = ? ORDER BY updated_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [self._record(row) for row in rows]

    def get_hash(self, user_id: str, itinerary_id: str) -> Optional[str]:
        self._require_user(user_id)
        with self._connection() as conn:
            row = conn.execute(
                "SELECT hash FROM itineraries WHERE id = ? AND user_id = ?", (itinerary_id, user_id)
            ).fetchone()
        return row["hash"] if row else None


__all__ = ["ItineraryRepository", "ItineraryRecord", "SaveRequest", "SaveResponse"]
