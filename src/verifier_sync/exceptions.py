"""Exceptions raised by the sync engine and its collaborators."""


class SyncError(Exception):
    """Base class for all sync failures."""


class NetworkFailureError(SyncError):
    """Transport or HTTP error while talking to the remote API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ParseFailureError(SyncError):
    """Malformed response body from the remote API."""


class InconsistentStateError(SyncError):
    """Local state failed a post-sync consistency check.

    Raised when the key store is empty after a completed key sync. The
    orchestrator answers it with a single reset-and-retry.
    """
