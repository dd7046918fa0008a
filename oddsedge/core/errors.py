"""Exception taxonomy for the collection pipeline and edge engine."""
from typing import Optional


class OddsEdgeError(Exception):
    """Base class for application errors."""


class UpstreamUnavailableError(OddsEdgeError):
    """The odds feed failed, timed out, or answered with an unusable status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetryableUpstreamError(UpstreamUnavailableError):
    """Transient upstream failure (429 or 5xx) worth retrying."""

    def __init__(self, message: str, status_code: Optional[int] = None, retry_after: float = 0.0):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class PersistenceError(OddsEdgeError):
    """A repository write failed and was rolled back."""


class UnknownSportError(OddsEdgeError, ValueError):
    """The sport code is not one the pipeline knows how to collect."""
