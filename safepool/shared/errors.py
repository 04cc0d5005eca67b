"""Error taxonomy shared by the worker, web and observer services."""

from typing import Optional


class SafePoolError(Exception):
    """Base class for all expected safepool failures."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(SafePoolError):
    """A required identifier or field is missing or malformed."""

    status_code = 400


class UpstreamUnavailable(SafePoolError):
    """The classifier is not configured."""

    status_code = 503


class PayloadTooLarge(SafePoolError):
    """Decoded frame exceeds the payload ceiling."""

    status_code = 400


class ParseError(SafePoolError):
    """The classifier reply could not be parsed into the result contract."""

    status_code = 502


class PersistenceError(SafePoolError):
    """A storage write for an alert, incident or dismissal failed."""

    status_code = 500


class NetworkError(SafePoolError):
    """Transient connectivity failure talking to the classifier."""

    status_code = 502


class NotFoundError(SafePoolError):
    """Referenced alert or incident does not exist."""

    status_code = 404
