from __future__ import annotations

from enum import Enum

from msgspec import Struct

__all__ = (
    "MAX_ATTEMPTS",
    "MUTATION_FIELDS",
    "BackupRef",
    "CopyState",
    "CopyStatus",
    "PackageEdit",
    "PipelineResult",
    "backup_package_file_name",
    "package_file_name",
)

MAX_ATTEMPTS = 3

BACKUP_SUFFIX = "original"

# (struct attribute, nuspec element) in the order edits are applied.
MUTATION_FIELDS: tuple[tuple[str, str], ...] = (
    ("authors", "authors"),
    ("copyright", "copyright"),
    ("description", "description"),
    ("icon_url", "iconUrl"),
    ("license_url", "licenseUrl"),
    ("project_url", "projectUrl"),
    ("release_notes", "releaseNotes"),
    ("summary", "summary"),
    ("title", "title"),
    ("tags", "tags"),
)


def package_file_name(package_id: str, version: str) -> str:
    """Return the blob name of the live package archive."""
    return f"{package_id.lower()}.{version.lower()}.nupkg"


def backup_package_file_name(package_id: str, version: str) -> str:
    """Return the blob name of the pre-edit backup of a package archive."""
    return f"{package_id.lower()}.{version.lower()}.{BACKUP_SUFFIX}.nupkg"


class PackageEdit(Struct, frozen=True, kw_only=True):
    """A queued metadata edit for a published package.

    Attributes:
        edit_key: Primary key of the edit row.
        package_id: Package identifier (case-insensitive).
        version: Package version (case-insensitive).
        edit_name: Descriptive label for the edit.
        tried_count: Number of prior processing attempts.
        authors: Replacement authors, or None to leave unchanged.
        copyright: Replacement copyright, or None to leave unchanged.
        description: Replacement description, or None to leave unchanged.
        icon_url: Replacement icon URL, or None to leave unchanged.
        license_url: Replacement license URL, or None to leave unchanged.
        project_url: Replacement project URL, or None to leave unchanged.
        release_notes: Replacement release notes, or None to leave unchanged.
        summary: Replacement summary, or None to leave unchanged.
        tags: Replacement tags, or None to leave unchanged.
        title: Replacement title, or None to leave unchanged.
    """

    edit_key: int
    package_id: str
    version: str
    edit_name: str | None = None
    tried_count: int = 0

    authors: str | None = None
    copyright: str | None = None
    description: str | None = None
    icon_url: str | None = None
    license_url: str | None = None
    project_url: str | None = None
    release_notes: str | None = None
    summary: str | None = None
    tags: str | None = None
    title: str | None = None

    def mutations(self) -> list[tuple[str, str]]:
        """Return the non-null manifest mutations as (element, value) pairs."""
        pairs = []
        for attr, element in MUTATION_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                pairs.append((element, value))
        return pairs

    @property
    def backup_file_name(self) -> str:
        return backup_package_file_name(self.package_id, self.version)


class BackupRef(Struct, frozen=True, kw_only=True):
    """Reference to the original backup of a package archive.

    Attributes:
        package_id: Package identifier.
        version: Package version.
        name: Blob name of the backup archive.
        live_name: Blob name of the live archive the backup was taken from.
        created: Whether this call performed the copy.
    """

    package_id: str
    version: str
    name: str
    live_name: str
    created: bool = False


class CopyStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"


class CopyState(Struct, frozen=True):
    """Status of a storage-side copy."""

    status: CopyStatus
    description: str | None = None


class PipelineResult(Struct, kw_only=True):
    """Summary of a single pipeline run.

    Attributes:
        fetched: Number of eligible edits found.
        backed_up: Edit keys with a backup reference after phase 1.
        applied: Edit keys that were applied and completed.
        failed: Edit keys that failed in either phase.
        abandoned: Number of edits that exhausted their attempts.
    """

    fetched: int = 0
    backed_up: list[int] = []
    applied: list[int] = []
    failed: list[int] = []
    abandoned: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed
