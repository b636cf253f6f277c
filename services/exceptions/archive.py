"""Domain exceptions for package archives.

These exceptions are raised while reading or rewriting a `.nupkg` archive.
Retrying does not help until the archive content is fixed.
"""

from __future__ import annotations

from utilities.errors import DomainError


class ArchiveError(DomainError):
    """Base exception for package archive errors."""


class CorruptArchiveError(ArchiveError):
    """Archive or its manifest cannot be parsed."""


class ManifestMissingError(ArchiveError):
    """Archive has no root-level `.nuspec` manifest."""

    def __init__(self, **context: object) -> None:
        super().__init__("Package archive has no .nuspec manifest at its root", **context)
