"""Base repository class."""

from __future__ import annotations

from typing import Any

from asyncpg import Connection, Pool

from .exceptions import ConcurrentModificationError, extract_rows_affected


class BaseRepository:
    """Base class for all repositories.

    Repositories handle data access and raise repository-specific exceptions.
    They accept an optional connection parameter for transaction participation.
    """

    def __init__(self, pool: Pool | Connection) -> None:
        """Initialize repository.

        Args:
            pool: AsyncPG connection pool. A single connection is accepted too,
                which is what the tests and one-off scripts pass in.
        """
        self._pool = pool

    def _get_connection(self, conn: Connection | None = None) -> Connection | Pool:
        """Get connection for query execution.

        Args:
            conn: Optional connection from transaction context.

        Returns:
            Connection if provided (for transactions), otherwise pool.
        """
        return conn or self._pool

    async def _update_single_row(
        self,
        query: str,
        key: int,
        *args: Any,  # noqa: ANN401
        table: str,
        conn: Connection | None = None,
    ) -> None:
        """Run an UPDATE that must touch exactly one row.

        Args:
            query: UPDATE statement; `$1` is bound to `key`.
            key: Primary key of the targeted row.
            *args: Remaining query parameters.
            table: Table name, for error context.
            conn: Optional connection for transaction participation.

        Raises:
            ConcurrentModificationError: If the row count is not exactly 1.
        """
        _conn = self._get_connection(conn)

        status = await _conn.execute(query, key, *args)
        rows_affected = extract_rows_affected(status)
        if rows_affected != 1:
            raise ConcurrentModificationError(table=table, key=key, rows_affected=rows_affected)
