"""Error taxonomy for the discovery core.

Per-attempt backend failures are retried by the endpoint client and end up
wrapped in ``EndpointExhaustedError``; only geocoding errors are meant to reach
the HTTP layer.
"""

from typing import Optional


class RepairFinderError(Exception):
    """Base error for the discovery core."""


class BackendAttemptError(RepairFinderError):
    """A single failed attempt against one geodata endpoint."""

    def __init__(self, message: str, endpoint: str, attempt: int):
        super().__init__(message)
        self.endpoint = endpoint
        self.attempt = attempt


class TransientNetworkError(BackendAttemptError):
    """Connection failure or timeout talking to an endpoint."""


class RateLimitedError(BackendAttemptError):
    """Endpoint answered 429."""


class BackendStatusError(BackendAttemptError):
    """Endpoint answered with a non-success status other than 429."""

    def __init__(self, message: str, endpoint: str, attempt: int, status_code: Optional[int] = None):
        super().__init__(message, endpoint, attempt)
        self.status_code = status_code


class EndpointExhaustedError(RepairFinderError):
    """Every attempt across the endpoint pool failed."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"All {attempts} attempts failed{detail}")
        self.attempts = attempts
        self.last_error = last_error


class MalformedRecordError(RepairFinderError):
    """A backend element lacks a name or a resolvable coordinate."""


class LocationNotFoundError(RepairFinderError):
    """The geocoder returned no match for the given text."""


class GeocodingError(RepairFinderError):
    """The geocoding backend could not be reached or answered with an error."""
