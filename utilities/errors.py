import typing
from logging import getLogger

import sentry_sdk

if typing.TYPE_CHECKING:
    from models.edits import PackageEdit

log = getLogger(__name__)

__all__ = ["ConfigurationError", "DomainError", "report_edit_failure"]


class DomainError(Exception):
    """Base exception for domain-level failures.

    Attributes:
        message: Human-readable error message.
        context: Additional context about the error.

    """

    def __init__(self, message: str, **context: typing.Any) -> None:  # noqa: ANN401
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            **context: Additional context (e.g., package ids, blob names).

        """
        super().__init__(message)
        self.message = message
        self.context = context


class ConfigurationError(DomainError):
    """Configuration is missing or invalid."""


def report_edit_failure(exception: BaseException, edit: "PackageEdit", phase: str) -> None:
    """Log a failed edit and forward it to Sentry with the edit as context.

    Args:
        exception: The exception raised while processing the edit.
        edit: The edit that failed.
        phase: Pipeline phase that failed ("backup" or "apply").

    """
    log.error(
        "[!] Edit %s failed during %s: Key=%s, Package=%s, Version=%s: %s",
        edit.edit_name or "<unnamed>",
        phase,
        edit.edit_key,
        edit.package_id,
        edit.version,
        exception,
        exc_info=exception,
    )
    with sentry_sdk.isolation_scope() as scope:
        scope.set_tag("phase", phase)
        scope.set_tag("package_id", edit.package_id)
        scope.set_context(
            "Package Edit",
            {
                "edit_key": edit.edit_key,
                "package_id": edit.package_id,
                "version": edit.version,
                "tried_count": edit.tried_count,
            },
        )
        if isinstance(exception, DomainError):
            scope.set_context("Error Context", {k: str(v) for k, v in exception.context.items()})
        sentry_sdk.capture_exception(exception)
