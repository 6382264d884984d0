"""
Error taxonomy for the trip planner service.

Every error carries a machine-readable ErrorCode, a message with enough
context (field names, location, trip id) to show to a user, and the HTTP
status the API layer responds with.

Usage:
    from services.planner.errors import NotFoundError

    raise NotFoundError(trip_id)
"""

from __future__ import annotations

import math
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for client-facing error payloads."""

    # Input errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"

    # Weather errors
    RATE_LIMITED = "RATE_LIMITED"
    WEATHER_UNREACHABLE = "WEATHER_UNREACHABLE"
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    WEATHER_SOURCE_ERROR = "WEATHER_SOURCE_ERROR"

    # Storage errors
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    MIGRATION_ERROR = "MIGRATION_ERROR"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_ERROR: "Your request contains invalid information. Please check and try again.",
    ErrorCode.INVALID_REQUEST: "Invalid request. Please check the parameters and try again.",
    ErrorCode.NOT_FOUND: "Resource not found.",
    ErrorCode.RATE_LIMITED: "Weather service rate limit exceeded. Please try again later.",
    ErrorCode.WEATHER_UNREACHABLE: "Network error while fetching weather data. Please check your connection.",
    ErrorCode.LOCATION_NOT_FOUND: "Location not found. Please check the location name.",
    ErrorCode.WEATHER_SOURCE_ERROR: "Weather data is temporarily unavailable. Please try again.",
    ErrorCode.PERSISTENCE_ERROR: "Your changes could not be saved. Please try again.",
    ErrorCode.MIGRATION_ERROR: "Stored data could not be upgraded.",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred.",
}


class PlannerError(Exception):
    """Base exception for all trip planner errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES.get(self.code, USER_MESSAGES[ErrorCode.INTERNAL_ERROR])

    def details(self) -> list[str] | None:
        return None


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class ValidationError(PlannerError):
    """One or more trip fields violated their constraints. Lists every violation."""

    code = ErrorCode.VALIDATION_ERROR
    status_code = 422

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid trip data: " + ", ".join(self.errors))

    def details(self) -> list[str]:
        return self.errors


class InvalidInputError(PlannerError):
    """A required parameter was blank or malformed."""

    code = ErrorCode.INVALID_REQUEST
    status_code = 400


class NotFoundError(PlannerError):
    """Referenced trip id does not exist."""

    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, trip_id: str) -> None:
        self.trip_id = trip_id
        super().__init__(f"Trip not found with ID: {trip_id}")


# ---------------------------------------------------------------------------
# Weather source errors
# ---------------------------------------------------------------------------


class WeatherSourceError(PlannerError):
    """Generic weather source failure."""

    code = ErrorCode.WEATHER_SOURCE_ERROR
    status_code = 500

    def __init__(self, message: str, location: str | None = None) -> None:
        self.location = location
        super().__init__(message)


class RateLimitedError(WeatherSourceError):
    """The source's request window is exhausted."""

    code = ErrorCode.RATE_LIMITED
    status_code = 429

    def __init__(self, retry_after_seconds: float, location: str | None = None) -> None:
        self.retry_after_seconds = max(1, math.ceil(retry_after_seconds))
        super().__init__(
            f"Rate limit exceeded. Retry after {self.retry_after_seconds} seconds",
            location=location,
        )


class WeatherTimeoutError(WeatherSourceError):
    """The source did not answer in time."""

    code = ErrorCode.WEATHER_UNREACHABLE
    status_code = 503


class WeatherNetworkError(WeatherSourceError):
    """The source could not be reached."""

    code = ErrorCode.WEATHER_UNREACHABLE
    status_code = 503


class LocationNotFoundError(WeatherSourceError):
    """The source has no data for the requested location."""

    code = ErrorCode.LOCATION_NOT_FOUND
    status_code = 404


class WeatherUnavailableError(PlannerError):
    """The source failed and there was no cached entry to fall back on."""

    def __init__(self, location: str, cause: Exception) -> None:
        self.location = location
        self.cause = cause
        super().__init__(f"Failed to get weather for {location}: {cause}")

    @property
    def code(self) -> ErrorCode:  # type: ignore[override]
        if isinstance(self.cause, PlannerError):
            return self.cause.code
        return ErrorCode.WEATHER_SOURCE_ERROR

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return weather_error_status(self.cause)


def weather_error_status(exc: BaseException) -> int:
    """Map a weather failure to the HTTP status the API responds with.

    429 for rate limits, 503 for network/timeout, 404 for unknown
    locations, 500 for anything else.
    """
    if isinstance(exc, WeatherUnavailableError):
        return weather_error_status(exc.cause)
    if isinstance(exc, RateLimitedError):
        return 429
    if isinstance(exc, (WeatherTimeoutError, WeatherNetworkError)):
        return 503
    if isinstance(exc, LocationNotFoundError):
        return 404
    return 500


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------


class PersistenceError(PlannerError):
    """Saving, loading, backing up or restoring the store failed."""

    code = ErrorCode.PERSISTENCE_ERROR
    status_code = 500


class MigrationError(PlannerError):
    """A stored data version could not be parsed or a migration step failed."""

    code = ErrorCode.MIGRATION_ERROR
    status_code = 500
