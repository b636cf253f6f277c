"""Apply a single queued edit to a package archive."""

from __future__ import annotations

from logging import getLogger

from models.edits import BackupRef, PackageEdit
from repository.package_edits_repository import PackageEditsRepository
from utilities.nupkg_rewriter import rewrite_nupkg_manifest

from .blob_storage_service import BlobStore

log = getLogger(__name__)


class EditApplierService:
    """Rewrite a package manifest in place and record the edit as done.

    Each step is a separate durable operation and a failure stops the
    remaining ones. The tried count is incremented before anything is
    mutated, so an interrupted attempt still counts against the edit.
    """

    def __init__(
        self,
        edits_repo: PackageEditsRepository,
        blob_store: BlobStore,
        *,
        dry_run: bool = False,
    ) -> None:
        """Initialize edit applier service.

        Args:
            edits_repo: Package edits repository.
            blob_store: Store holding the package archives.
            dry_run: Log the planned rewrite without touching either store.
        """
        self._edits_repo = edits_repo
        self._blob_store = blob_store
        self._dry_run = dry_run

    async def apply(self, edit: PackageEdit, backup: BackupRef) -> None:
        """Apply an edit to the live archive its backup was taken from.

        Args:
            edit: The queued edit.
            backup: Backup reference collected for this edit.

        Raises:
            ConcurrentModificationError: If either metadata update misses its row.
            CorruptArchiveError: If the archive cannot be parsed.
            ManifestMissingError: If the archive has no manifest.
        """
        log.info(
            "Processing Edit Key=%s, Package=%s, Version=%s",
            edit.edit_key,
            edit.package_id,
            edit.version,
        )
        mutations = edit.mutations()

        if self._dry_run:
            log.info(
                "[dry-run] Would rewrite %s with %s",
                backup.live_name,
                ", ".join(field for field, _ in mutations) or "no changes",
            )
            return

        log.info("Incrementing the edit tried count in DB, Key=%s", edit.edit_key)
        await self._edits_repo.mark_attempted(edit.edit_key)

        log.info("Downloading blob to memory %s", backup.live_name)
        original = await self._blob_store.download(backup.live_name)

        log.info("Rewriting nupkg package in memory %s", backup.live_name)
        rewritten = rewrite_nupkg_manifest(original, mutations)

        log.info("Uploading blob from memory %s", backup.live_name)
        await self._blob_store.upload(backup.live_name, rewritten)

        log.info("Finishing the edit in DB, Key=%s", edit.edit_key)
        await self._edits_repo.mark_completed(edit.edit_key)
        log.info("[✓] Applied edit Key=%s", edit.edit_key)
