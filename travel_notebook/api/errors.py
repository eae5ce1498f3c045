# travel_notebook/api/errors.py
"""Exception hierarchy shared by the services and route handlers."""


class TravelNotebookError(Exception):
    """Base class for all itinerary errors."""


class ValidationError(TravelNotebookError, ValueError):
    """A generation request failed validation."""


class GenerationError(TravelNotebookError):
    """The LLM call failed or returned unusable text."""


class EnrichmentError(TravelNotebookError):
    """A single place lookup failed. Never aborts a batch."""


class PersistenceError(TravelNotebookError):
    """Saving or loading an itinerary failed."""

    def __init__(self, message: str, not_found: bool = False):
        super().__init__(message)
        self.not_found = not_found


class AuthenticationError(TravelNotebookError):
    """No user identity is available for a persistence call."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


__all__ = [
    "TravelNotebookError",
    "ValidationError",
    "GenerationError",
    "EnrichmentError",
    "PersistenceError",
    "AuthenticationError",
]
