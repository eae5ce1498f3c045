# api/config.py
"""Configuration management for the travel notebook API."""
import os
from dotenv import load_dotenv

load_dotenv()


def get_openai_api_key():
    """Get OpenAI API key from environment."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ValueError("OPENAI_API_KEY not set")
    return api_key


def get_openai_model():
    """Get the chat model used for itinerary generation."""
    return os.getenv("OPENAI_CHAT_MODEL", "gpt-4.1")


def get_google_maps_config():
    """Get Google Maps configuration."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 3000))


def get_database_path():
    """Get the SQLite file used by the itinerary repository."""
    return os.getenv("ITINERARY_DATABASE", os.path.join(os.getcwd(), "itineraries.db"))


def get_sync_config():
    """Get itinerary synchronization configuration.

    ``enrichment_max_distance_km`` gates whether looked-up coordinates replace
    the generated ones; ``autosave_debounce_ms`` is the quiet period before an
    edit is persisted.
    """
    return {
        "enrichment_max_distance_km": float(os.getenv("ENRICHMENT_MAX_DISTANCE_KM", "150")),
        "autosave_debounce_ms": int(os.getenv("AUTOSAVE_DEBOUNCE_MS", "500")),
        "editor_version": os.getenv("EDITOR_VERSION", "2.28.0"),
        "max_trip_days": int(os.getenv("MAX_TRIP_DAYS", "10")),
        "llm_temperature": float(os.getenv("LLM_TEMPERATURE", "0.7")),
        "llm_max_tokens": int(os.getenv("LLM_MAX_TOKENS", "4096")),
    }


def get_websocket_config():
    """Get WebSocket configuration."""
    return {
        "max_message_size": int(os.getenv("WEBSOCKET_MAX_MESSAGE_SIZE", "10485760")),  # 10MB
        "ping_interval": int(os.getenv("WEBSOCKET_PING_INTERVAL", "25")),
        "ping_timeout": int(os.getenv("WEBSOCKET_PING_TIMEOUT", "60")),
        "cors_allowed_origins": os.getenv("WEBSOCKET_CORS_ORIGINS", "*").split(",")
    }
