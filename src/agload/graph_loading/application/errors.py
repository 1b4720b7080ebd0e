"""Throwing adapter over result-returning loader calls."""

from __future__ import annotations

from graph_loading.domain.exceptions import (
    BatchLoadError,
    EndpointIntegrityError,
    LoadTransactionError,
    MutationError,
    PayloadFormatError,
    RecordValidationError,
    ResourceCleanupError,
    StagingError,
)
from graph_loading.domain.value_objects import ErrorCategory, LoadError, LoadResult

_EXCEPTION_BY_CATEGORY: dict[ErrorCategory, type[BatchLoadError]] = {
    ErrorCategory.VALIDATION: RecordValidationError,
    ErrorCategory.STAGING: StagingError,
    ErrorCategory.MUTATION: MutationError,
    ErrorCategory.ENDPOINT_INTEGRITY: EndpointIntegrityError,
    ErrorCategory.TRANSACTION: LoadTransactionError,
    ErrorCategory.RESOURCE_CLEANUP: ResourceCleanupError,
    ErrorCategory.PAYLOAD: PayloadFormatError,
    ErrorCategory.UNEXPECTED: BatchLoadError,
}


def _primary_error(errors: list[LoadError]) -> LoadError | None:
    # The summary of an endpoint failure follows its per-edge errors
    if not errors:
        return None
    return errors[-1]


def raise_for_result(result: LoadResult) -> LoadResult:
    """Return a successful result, or raise the exception for a failed one.

    The raised exception carries the full result as ``result``.

    Raises:
        BatchLoadError: Subclass matching the category of the primary error
    """
    if result.success:
        return result

    primary = _primary_error(result.errors or [])
    if primary is None:
        error = BatchLoadError("Graph load failed without a reported error")
    else:
        error = _EXCEPTION_BY_CATEGORY[primary.category](primary.message)
        if isinstance(error, EndpointIntegrityError):
            error.missing_ids = list(primary.details.get("missing_ids", []))

    error.result = result
    raise error
