"""Sync-specific exceptions.

Each error carries the wire ``error_type`` used in ``syncError`` events and a
human-readable recommendation. ``fatal`` errors abort the running cycle;
remote-leg errors are reported and the cycle continues on local data.
"""

from __future__ import annotations

from typing import Any


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SyncError(DomainException):
    """Base class for errors raised while synchronizing replicas."""

    error_type = "sync_failed"
    fatal = True
    default_recommendation = (
        "Please try again later. If the problem persists, check your connection "
        "or contact support."
    )

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        recommendation: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.recommendation = recommendation or self.default_recommendation


class LocalStorageError(SyncError):
    """The local replica could not be read or written."""

    error_type = "local_storage_error"
    default_recommendation = "Please check your storage permissions and available space."


class ValidationError(SyncError):
    """The resolved payload failed schema validation; nothing was persisted."""

    error_type = "validation_error"
    default_recommendation = (
        "Please check your data and try again. If the problem persists, contact support."
    )

    def __init__(
        self,
        message: str,
        errors: list[str],
        *,
        recommendation: str | None = None,
    ) -> None:
        super().__init__(message, {"errors": list(errors)}, recommendation=recommendation)
        self.errors = list(errors)


class SaveFailureError(SyncError):
    """Unexpected persistence failure after validation passed."""

    error_type = "save_failure"
    default_recommendation = "Please try again later. If the problem persists, contact support."


class RemoteStorageError(SyncError):
    """Base class for failures of the remote leg. Never fatal to a cycle."""

    error_type = "sync_storage_error"
    fatal = False
    default_recommendation = "Sync will retry automatically."


class SyncStorageError(RemoteStorageError):
    """Generic remote backend failure."""


class QuotaExceededError(RemoteStorageError):
    """Remote byte quota (total or per item) exceeded."""

    error_type = "quota_exceeded"
    default_recommendation = "Please remove some links or categories to free up space."


class MaxItemsExceededError(RemoteStorageError):
    """Remote item-count ceiling reached."""

    error_type = "max_items_exceeded"
    default_recommendation = "Consider consolidating your data or removing unused items."


class NetworkError(RemoteStorageError):
    """Remote backend unreachable."""

    error_type = "network_error"
    default_recommendation = "Sync will resume automatically when the connection is restored."


_REMOTE_MARKERS: tuple[tuple[str, type[RemoteStorageError], str], ...] = (
    ("QUOTA_BYTES", QuotaExceededError, "Remote sync storage quota exceeded."),
    ("MAX_ITEMS", MaxItemsExceededError, "Maximum number of sync items reached."),
    ("Network", NetworkError, "Network error while accessing sync storage."),
)


def classify_remote_error(exc: BaseException) -> RemoteStorageError:
    """Map any backend exception raised by the remote leg onto the remote taxonomy.

    Typed errors pass through unchanged. Anything else is matched on the
    markers real sync backends put in their messages (``QUOTA_BYTES``,
    ``MAX_ITEMS``, ``Network``) and falls back to ``SyncStorageError``.
    """
    if isinstance(exc, RemoteStorageError):
        return exc

    text = str(exc)
    details = {"details": text, "exception_type": type(exc).__name__}
    for marker, error_cls, message in _REMOTE_MARKERS:
        if marker in text:
            return error_cls(message, details)
    if isinstance(exc, ConnectionError | TimeoutError):
        return NetworkError("Network error while accessing sync storage.", details)
    return SyncStorageError("Failed to access remote sync storage.", details)
