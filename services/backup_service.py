"""Backup service: keep an untouched copy of every package before it is edited."""

from __future__ import annotations

import asyncio
import time
from logging import getLogger

from models.edits import BackupRef, CopyState, CopyStatus, backup_package_file_name, package_file_name
from utilities.config import PipelineConfig

from .blob_storage_service import BlobStore
from .exceptions.backup import BackupFailedError, BackupTimeoutError

log = getLogger(__name__)


class BackupService:
    """Create the original backup of a package archive exactly once.

    The backup blob is never overwritten. Its presence is what makes a rerun
    after a crash safe: packages that were already backed up are skipped.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        *,
        poll_interval: float = 3.0,
        max_wait: float | None = None,
        dry_run: bool = False,
    ) -> None:
        """Initialize backup service.

        Args:
            blob_store: Store holding live and backup archives.
            poll_interval: Seconds between copy status checks.
            max_wait: Seconds to wait for a pending copy; unbounded if None.
            dry_run: Log the copy instead of starting it.
        """
        self._blob_store = blob_store
        self._poll_interval = poll_interval
        self._max_wait = max_wait
        self._dry_run = dry_run

    @classmethod
    def from_config(cls, blob_store: BlobStore, config: PipelineConfig) -> BackupService:
        return cls(
            blob_store,
            poll_interval=config.poll_interval,
            max_wait=config.max_wait,
            dry_run=config.dry_run,
        )

    async def ensure_backup(self, package_id: str, version: str) -> BackupRef:
        """Return the original backup of a package, creating it if needed.

        Args:
            package_id: Package identifier.
            version: Package version.

        Returns:
            Reference to the backup archive.

        Raises:
            BackupFailedError: If the storage-side copy ends in a non-success state.
            BackupTimeoutError: If the copy is still pending after `max_wait`.
        """
        live_name = package_file_name(package_id, version)
        backup_name = backup_package_file_name(package_id, version)
        ref = BackupRef(package_id=package_id, version=version, name=backup_name, live_name=live_name)

        if await self._blob_store.exists(backup_name):
            log.debug("Backup already exists: %s", backup_name)
            return ref

        if self._dry_run:
            log.info("[dry-run] Would back up blob: %s to %s", live_name, backup_name)
            return ref

        log.info("[→] Backing up blob: %s to %s", live_name, backup_name)
        state = await self._blob_store.start_copy(live_name, backup_name)
        state = await self._wait_for_copy(live_name, backup_name, state)

        if state.status is not CopyStatus.SUCCESS:
            log.error("[!] Backup of %s failed: %s", live_name, state.description or state.status.value)
            raise BackupFailedError(live_name, backup_name, state.status.value, state.description)

        log.info("[✓] Backed up blob: %s", backup_name)
        return BackupRef(package_id=package_id, version=version, name=backup_name, live_name=live_name, created=True)

    async def _wait_for_copy(self, source: str, destination: str, state: CopyState) -> CopyState:
        started = time.monotonic()
        while state.status is CopyStatus.PENDING:
            waited = time.monotonic() - started
            if self._max_wait is not None and waited >= self._max_wait:
                raise BackupTimeoutError(source, destination, waited)
            log.info("(sleeping for a copy completion) %s", destination)
            await asyncio.sleep(self._poll_interval)
            state = await self._blob_store.get_copy_state(destination)
        return state
