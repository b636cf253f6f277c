"""Repository layer for data access."""

from repository.package_edits_repository import PackageEditsRepository, provide_package_edits_repository

__all__ = [
    "PackageEditsRepository",
    "provide_package_edits_repository",
]
