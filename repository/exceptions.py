"""Repository-layer exceptions.

These exceptions represent database-level errors and are raised by repositories
when database operations fail or return unexpected results.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for repository layer errors."""

    def __init__(self, message: str, **context: object) -> None:
        """Initialize repository error.

        Args:
            message: Human-readable error message.
            **context: Additional context about the error.
        """
        self.message = message
        self.context = context
        super().__init__(message)


class ConcurrentModificationError(RepositoryError):
    """A single-row update affected an unexpected number of rows.

    The row vanished or was changed by another agent between fetch and update.
    """

    def __init__(self, table: str, key: int, rows_affected: int) -> None:
        """Initialize concurrent modification error.

        Args:
            table: Table the update targeted.
            key: Primary key of the targeted row.
            rows_affected: Number of rows the update reported.
        """
        super().__init__(
            f"Expected exactly 1 row updated in '{table}' for key {key}, got {rows_affected}",
            table=table,
            key=key,
            rows_affected=rows_affected,
        )
        self.table = table
        self.key = key
        self.rows_affected = rows_affected


def extract_rows_affected(status: str) -> int:
    """Extract the affected row count from an asyncpg command status tag.

    asyncpg returns tags such as "UPDATE 1" or "INSERT 0 1"; the row count is
    always the last token.

    Args:
        status: The command status tag.

    Returns:
        The number of affected rows, or 0 if the tag has no count.
    """
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0
