"""Data structures shared by the repository and service layers."""

from models.edits import (
    MAX_ATTEMPTS,
    BackupRef,
    CopyState,
    CopyStatus,
    PackageEdit,
    PipelineResult,
    backup_package_file_name,
    package_file_name,
)

__all__ = [
    "MAX_ATTEMPTS",
    "BackupRef",
    "CopyState",
    "CopyStatus",
    "PackageEdit",
    "PipelineResult",
    "backup_package_file_name",
    "package_file_name",
]
