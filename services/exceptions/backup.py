"""Domain exceptions for package backups.

A failed backup leaves the edit untouched: its tried count has not been
incremented yet, so a later run picks it up again.
"""

from __future__ import annotations

from utilities.errors import DomainError


class BackupError(DomainError):
    """Base exception for backup errors."""


class BackupFailedError(BackupError):
    """Storage-side copy finished in a non-success state."""

    def __init__(self, source: str, destination: str, status: str, description: str | None) -> None:
        super().__init__(
            f"Blob copy failed: CopyState={description or status}",
            source=source,
            destination=destination,
            status=status,
            description=description,
        )
        self.status = status
        self.description = description


class BackupTimeoutError(BackupError):
    """Storage-side copy was still pending after the maximum wait."""

    def __init__(self, source: str, destination: str, waited: float) -> None:
        super().__init__(
            f"Blob copy from {source} to {destination} still pending after {waited:.1f}s",
            source=source,
            destination=destination,
            waited=waited,
        )
        self.waited = waited
