"""Engine error taxonomy.

Only ``InsufficientDataError`` is fatal to the operation that raised it
(schedule building). The rest are non-fatal: the session logs them to the
Decision Log and keeps its last-known state.
"""


class EngineError(Exception):
    """Base class for every error raised by the itinerary engine."""


class InsufficientDataError(EngineError):
    """Raised when weather or the candidate pool is missing or empty."""

    def __init__(self, detail: str = "Missing required data: weather or places") -> None:
        super().__init__(detail)


class ReplanUnavailable(EngineError):
    """Raised when no viable replacement candidates exist for a replan."""

    def __init__(self, detail: str = "No suitable replacement activities available") -> None:
        super().__init__(detail)


class WeatherFetchError(EngineError):
    """Raised when the weather service call fails or returns a bad payload."""


class PlacesFetchError(EngineError):
    """Raised when the place-search service call fails or returns a bad payload."""


class ExternalServiceError(EngineError):
    """Raised when the language-model call fails or cannot be parsed."""


class UnknownActivityError(EngineError):
    """Raised when a command references an activity id not in the itinerary."""

    def __init__(self, activity_id: str) -> None:
        super().__init__(f"Activity {activity_id} not found")
        self.activity_id = activity_id
