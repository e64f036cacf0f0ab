"""Structured results for callers that do not handle exceptions."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from server.apps.files.exceptions import FilesError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OperationResult:
    """Success flag plus either a payload or an error."""

    success: bool
    payload: Any = None
    error: str | None = None
    error_kind: str | None = None


def run_operation(
    operation: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> OperationResult:
    """Call a folder or file operation and wrap its outcome.

    Domain errors become failed results with a message and the error's
    ``kind``. Anything else, such as failing to reach the database at
    all, propagates so the process-level handler sees it.

    Args:
        operation: Function from the logic layer.
        args: Positional arguments for the operation.
        kwargs: Keyword arguments for the operation.

    Returns:
        OperationResult describing the outcome.
    """
    try:
        payload = operation(*args, **kwargs)
    except FilesError as error:
        logger.info(
            '%s failed (%s): %s',
            operation.__name__,
            error.kind,
            error,
        )
        return OperationResult(
            success=False,
            error=str(error),
            error_kind=error.kind,
        )
    return OperationResult(success=True, payload=payload)
