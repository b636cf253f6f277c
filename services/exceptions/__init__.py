"""Service-layer domain exceptions."""

from .archive import ArchiveError, CorruptArchiveError, ManifestMissingError
from .backup import BackupError, BackupFailedError, BackupTimeoutError

__all__ = [
    "ArchiveError",
    "BackupError",
    "BackupFailedError",
    "BackupTimeoutError",
    "CorruptArchiveError",
    "ManifestMissingError",
]
