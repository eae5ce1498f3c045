# travel_notebook/routes/travel.py
"""Travel routes and blueprint configuration."""

import logging
from flask import Blueprint, jsonify, request, session
from werkzeug.exceptions import HTTPException

from travel_notebook.api.config import get_google_maps_config, get_sync_config
from travel_notebook.api.errors import (
    AuthenticationError,
    GenerationError,
    PersistenceError,
    TravelNotebookError,
    ValidationError,
)
from travel_notebook.api.hashing import generate_content_hash
from travel_notebook.api.models import BlockDocument
from travel_notebook.api.services.itinerary_service import GenerationRequest, ItineraryService
from travel_notebook.api.services.map_service import MapService
from travel_notebook.api.services.storage_service import ItineraryRepository, SaveRequest

logger = logging.getLogger(__name__)


def _status_for(error):
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthenticationError):
        return 401
    if isinstance(error, PersistenceError) and error.not_found:
        return 404
    if isinstance(error, GenerationError):
        return 502
    return 500


def create_travel_blueprint(repository_factory=None):
    """Create and configure the travel blueprint.

    Args:
        repository_factory: Callable returning the ItineraryRepository to use;
            defaults to one on the configured database

    Returns:
        Configured Flask Blueprint
    """
    travel_bp = Blueprint("travel", __name__, url_prefix="/travel")
    repository_factory = repository_factory or ItineraryRepository
    _repository = {}

    def repository():
        if "value" not in _repository:
            _repository["value"] = repository_factory()
        return _repository["value"]

    def current_user():
        return session.get("user_id")

    def json_body():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    @travel_bp.errorhandler(TravelNotebookError)
    def handle_domain_error(error):
        status = _status_for(error)
        if status >= 500:
            logger.error(f"Request failed: {error}")
        else:
            logger.warning(f"Request rejected ({status}): {error}")
        return jsonify({"error": str(error)}), status

    @travel_bp.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return error
        logger.exception(f"Unhandled error: {error}")
        return jsonify({"error": "Internal server error"}), 500

    @travel_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "travel"})

    @travel_bp.route("/api/config")
    def api_config():
        """Return Google Maps and editor sync configuration for frontend."""
        config = get_google_maps_config()
        sync = get_sync_config()

        if not config.get("api_key"):
            return jsonify({"error": "No Google Maps API key configured"}), 500

        return jsonify({
            "auth_type": "api_key",
            "google_maps_api_key": config["api_key"],
            "autosave_debounce_ms": sync["autosave_debounce_ms"],
            "editor_version": sync["editor_version"],
            "max_trip_days": sync["max_trip_days"],
        })

    @travel_bp.route("/api/itinerary", methods=["POST"])
    def api_generate_itinerary():
        """Generate a new itinerary from the trip form."""
        generation_request = GenerationRequest.from_dict(json_body())
        result = ItineraryService.generate_itinerary(generation_request)
        return jsonify(result.to_dict())

    @travel_bp.route("/api/itineraries", methods=["GET"])
    def api_list_itineraries():
        records = repository().list(current_user())
        return jsonify({"itineraries": [record.to_dict() for record in records]})

    @travel_bp.route("/api/itineraries", methods=["POST"])
    def api_create_itinerary():
        """Save a new itinerary; the id is assigned by the server."""
        save_request = SaveRequest.from_dict(json_body())
        save_request.id = None
        response = repository().save(current_user(), save_request)
        return jsonify(response.to_dict()), 201 if response.success else 500

    @travel_bp.route("/api/itineraries/<itinerary_id>", methods=["GET"])
    def api_get_itinerary(itinerary_id):
        record = repository().load(current_user(), itinerary_id)
        return jsonify(record.to_dict())

    @travel_bp.route("/api/itineraries/<itinerary_id>", methods=["PUT"])
    def api_save_itinerary(itinerary_id):
        save_request = SaveRequest.from_dict(json_body())
        save_request.id = itinerary_id
        response = repository().save(current_user(), save_request)
        return jsonify(response.to_dict()), 200 if response.success else 500

    @travel_bp.route("/api/itineraries/<itinerary_id>", methods=["PATCH"])
    def api_update_itinerary(itinerary_id):
        title = (json_body().get("title") or "").strip()
        if not title:
            raise ValidationError("A title is required")
        repository().update_details(current_user(), itinerary_id, title)
        return jsonify({"id": itinerary_id, "success": True})

    @travel_bp.route("/api/itineraries/<itinerary_id>", methods=["DELETE"])
    def api_delete_itinerary(itinerary_id):
        repository().delete(current_user(), itinerary_id)
        return jsonify({"id": itinerary_id, "success": True})

    @travel_bp.route("/api/hash", methods=["POST"])
    def api_hash():
        """Content hash of a posted block document."""
        data = json_body()
        editor_data = data.get("editorData", data)
        return jsonify({"hash": generate_content_hash(editor_data)})

    @travel_bp.route("/api/map-data", methods=["POST"])
    def api_map_data():
        """Map days and markers for a posted block document."""
        data = json_body()
        document = BlockDocument.from_dict(data.get("editorData", data))
        map_data = MapService.document_to_map_data(document)
        map_data["bounds"] = MapService.calculate_bounds(map_data)
        return jsonify(map_data)

    return travel_bp


__all__ = ["create_travel_blueprint"]
