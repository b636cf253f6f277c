"""Pipeline service: drive a batch of queued package edits to completion."""

from __future__ import annotations

import asyncio
from logging import getLogger

from asyncpg import Pool

from models.edits import BackupRef, PackageEdit, PipelineResult
from repository.package_edits_repository import PackageEditsRepository, provide_package_edits_repository
from utilities.config import PipelineConfig
from utilities.errors import report_edit_failure

from .backup_service import BackupService
from .blob_storage_service import BlobStore
from .edit_applier_service import EditApplierService

log = getLogger(__name__)


class PipelineService:
    """Back up every eligible package, then apply the edits one by one.

    Backups run concurrently; edits are applied sequentially in fetch order so
    two edits for the same package never rewrite the live archive at once.
    A failure only affects the edit that caused it.
    """

    def __init__(
        self,
        edits_repo: PackageEditsRepository,
        backup_service: BackupService,
        edit_applier: EditApplierService,
        *,
        max_parallel_backups: int = 10,
    ) -> None:
        """Initialize pipeline service.

        Args:
            edits_repo: Package edits repository.
            backup_service: Service creating original backups.
            edit_applier: Service applying a single edit.
            max_parallel_backups: Backups allowed to run at the same time.
        """
        self._edits_repo = edits_repo
        self._backup_service = backup_service
        self._edit_applier = edit_applier
        self._max_parallel_backups = max_parallel_backups

    async def run(self) -> PipelineResult:
        """Process every eligible edit once.

        Returns:
            Summary of the run.
        """
        edits = await self._edits_repo.fetch_eligible_edits()
        log.info("[→] Found %d eligible package edits", len(edits))
        result = PipelineResult(fetched=len(edits))

        backups = await self._backup_all(edits, result)
        await self._apply_all(edits, backups, result)
        result.abandoned = await self._report_abandoned()

        log.info(
            "[✓] Pipeline finished: fetched=%d, backed_up=%d, applied=%d, failed=%d, abandoned=%d",
            result.fetched,
            len(result.backed_up),
            len(result.applied),
            len(result.failed),
            result.abandoned,
        )
        return result

    async def _backup_all(self, edits: list[PackageEdit], result: PipelineResult) -> dict[int, BackupRef]:
        # One backup per archive; edits for the same package share its ref.
        groups: dict[str, list[PackageEdit]] = {}
        for edit in edits:
            groups.setdefault(edit.backup_file_name, []).append(edit)

        backups: dict[int, BackupRef] = {}
        semaphore = asyncio.Semaphore(self._max_parallel_backups)

        async def _backup(group: list[PackageEdit]) -> None:
            async with semaphore:
                try:
                    ref = await self._backup_service.ensure_backup(group[0].package_id, group[0].version)
                except Exception as e:
                    for edit in group:
                        report_edit_failure(e, edit, "backup")
                        result.failed.append(edit.edit_key)
                    return
            for edit in group:
                backups[edit.edit_key] = ref

        await asyncio.gather(*(_backup(group) for group in groups.values()))
        result.backed_up = [edit.edit_key for edit in edits if edit.edit_key in backups]
        return backups

    async def _apply_all(
        self,
        edits: list[PackageEdit],
        backups: dict[int, BackupRef],
        result: PipelineResult,
    ) -> None:
        for edit in edits:
            backup = backups.get(edit.edit_key)
            if backup is None:
                log.warning("Skipping edit Key=%s: no backup for %s %s", edit.edit_key, edit.package_id, edit.version)
                continue
            try:
                await self._edit_applier.apply(edit, backup)
            except Exception as e:
                report_edit_failure(e, edit, "apply")
                result.failed.append(edit.edit_key)
            else:
                result.applied.append(edit.edit_key)

    async def _report_abandoned(self) -> int:
        abandoned = await self._edits_repo.fetch_abandoned_edits()
        for edit in abandoned:
            log.warning(
                "Edit abandoned after %d attempts: Key=%s, Package=%s, Version=%s",
                edit.tried_count,
                edit.edit_key,
                edit.package_id,
                edit.version,
            )
        return len(abandoned)


def provide_pipeline_service(pool: Pool, blob_store: BlobStore, config: PipelineConfig) -> PipelineService:
    """Provider for PipelineService.

    Args:
        pool: AsyncPG connection pool.
        blob_store: Store holding the package archives.
        config: Pipeline settings.

    Returns:
        PipelineService instance.
    """
    edits_repo = provide_package_edits_repository(pool, config.max_attempts)
    return PipelineService(
        edits_repo,
        BackupService.from_config(blob_store, config),
        EditApplierService(edits_repo, blob_store, dry_run=config.dry_run),
        max_parallel_backups=config.max_parallel_backups,
    )
