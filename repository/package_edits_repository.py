"""Package edits repository for data access."""

from __future__ import annotations

import msgspec
from asyncpg import Connection, Pool

from models.edits import MAX_ATTEMPTS, PackageEdit

from .base import BaseRepository

_EDIT_COLUMNS = """
    pm.key AS edit_key,
    pr.id AS package_id,
    p.version,
    pm.edit_name,
    pm.tried_count,
    pm.authors,
    pm.copyright,
    pm.description,
    pm.icon_url,
    pm.license_url,
    pm.project_url,
    pm.release_notes,
    pm.summary,
    pm.tags,
    pm.title
"""

_EDIT_JOIN = """
    FROM package_metadatas AS pm
    JOIN packages AS p ON p.key = pm.package_key
    JOIN package_registrations AS pr ON pr.key = p.package_registration_key
"""


class PackageEditsRepository(BaseRepository):
    """Repository for queued package edit data access."""

    def __init__(self, pool: Pool | Connection, *, max_attempts: int = MAX_ATTEMPTS) -> None:
        """Initialize repository.

        Args:
            pool: AsyncPG connection pool.
            max_attempts: Attempts after which an edit is no longer eligible.
        """
        super().__init__(pool)
        self._max_attempts = max_attempts

    async def fetch_eligible_edits(self, *, conn: Connection | None = None) -> list[PackageEdit]:
        """Fetch edits that are not completed and still have attempts left.

        Args:
            conn: Optional connection for transaction participation.

        Returns:
            Eligible edits. Callers must not rely on the order.
        """
        _conn = self._get_connection(conn)

        query = f"""
            SELECT {_EDIT_COLUMNS}
            {_EDIT_JOIN}
            WHERE pm.is_completed IS FALSE AND pm.tried_count < $1
            ORDER BY pm.key;
        """
        rows = await _conn.fetch(query, self._max_attempts)
        return msgspec.convert([dict(row) for row in rows], list[PackageEdit])

    async def fetch_abandoned_edits(self, *, conn: Connection | None = None) -> list[PackageEdit]:
        """Fetch edits that exhausted their attempts without completing.

        Args:
            conn: Optional connection for transaction participation.

        Returns:
            Abandoned edits, oldest key first.
        """
        _conn = self._get_connection(conn)

        query = f"""
            SELECT {_EDIT_COLUMNS}
            {_EDIT_JOIN}
            WHERE pm.is_completed IS FALSE AND pm.tried_count >= $1
            ORDER BY pm.key;
        """
        rows = await _conn.fetch(query, self._max_attempts)
        return msgspec.convert([dict(row) for row in rows], list[PackageEdit])

    async def mark_attempted(self, edit_key: int, *, conn: Connection | None = None) -> None:
        """Increment the tried count of an edit by one.

        Args:
            edit_key: Edit primary key.
            conn: Optional connection for transaction participation.

        Raises:
            ConcurrentModificationError: If the update did not touch exactly one row.
        """
        query = """
            UPDATE package_metadatas
            SET tried_count = tried_count + 1
            WHERE key = $1;
        """
        await self._update_single_row(query, edit_key, table="package_metadatas", conn=conn)

    async def mark_completed(self, edit_key: int, *, conn: Connection | None = None) -> None:
        """Mark an edit as completed.

        Args:
            edit_key: Edit primary key.
            conn: Optional connection for transaction participation.

        Raises:
            ConcurrentModificationError: If the update did not touch exactly one row.
        """
        query = """
            UPDATE package_metadatas
            SET is_completed = TRUE
            WHERE key = $1;
        """
        await self._update_single_row(query, edit_key, table="package_metadatas", conn=conn)


def provide_package_edits_repository(pool: Pool, max_attempts: int = MAX_ATTEMPTS) -> PackageEditsRepository:
    """Provider for PackageEditsRepository.

    Args:
        pool: AsyncPG connection pool.
        max_attempts: Attempts after which an edit is no longer eligible.

    Returns:
        PackageEditsRepository instance.
    """
    return PackageEditsRepository(pool, max_attempts=max_attempts)
