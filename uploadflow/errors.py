# errors.py
"""
Error taxonomy for the upload commit.

Every failure a caller can observe is a CommitError subclass carrying the
HTTP status the boundary answers with. RecordLookupError is internal: the
reconciler downgrades it to "no pending record" and never lets it escape.
"""

from typing import Any, Dict, Optional


class CommitError(Exception):
    """Base class for failures surfaced by an upload commit."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message}


class InvalidSubmission(CommitError):
    """The submission was rejected before any external call."""
    status_code = 400


class Rejected(CommitError):
    """A business rule blocked the submission (pending test package)."""
    status_code = 403

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(message or reason)
        self.reason = reason


class StorageFailure(CommitError):
    """An asset could not be written to the object store."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class RecordStoreFailure(CommitError):
    """The record store rejected a create or update."""

    def __init__(
        self,
        status: int,
        message: str,
        error_type: str = "UNKNOWN_TYPE",
        details: Any = None,
    ):
        super().__init__(message)
        self.status_code = status
        self.error_type = error_type
        self.details = details

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message, "type": self.error_type, "details": self.details}


class NotificationFailure(CommitError):
    """The notifier could not deliver. Logged only, never propagated."""


class RecordLookupError(Exception):
    """The pending-record query failed or returned an unreadable body."""
