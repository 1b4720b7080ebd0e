"""Domain exceptions for the graph loading bounded context.

Each exception maps to one ErrorCategory so that failures can travel
either as raised exceptions or as LoadError entries on a LoadResult.
"""

from __future__ import annotations

from typing import Any

from graph_loading.domain.value_objects import (
    EndpointFailure,
    EntityKind,
    ErrorCategory,
    LoadError,
    LoadResult,
)


class BatchLoadError(Exception):
    """Base exception for loader failures.

    Attributes:
        cause: The underlying exception, if any
        result: The failed LoadResult, when raised by a throwing adapter
    """

    category = ErrorCategory.UNEXPECTED

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.result: LoadResult | None = None

    def details(self) -> dict[str, Any]:
        """Machine-readable context for the result-level error."""
        if self.cause is None:
            return {}
        return {
            "cause": str(self.cause),
            "cause_type": type(self.cause).__name__,
        }

    def to_load_error(self) -> LoadError:
        return LoadError(
            category=self.category,
            message=self.message,
            details=self.details(),
        )


class RecordValidationError(BatchLoadError):
    """Raised when a record violates its label schema.

    Detected before any write; not retryable.
    """

    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        kind: EntityKind | None = None,
        label: str | None = None,
        property_name: str | None = None,
        record_index: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.label = label
        self.property_name = property_name
        self.record_index = record_index

    def details(self) -> dict[str, Any]:
        details: dict[str, Any] = {}
        if self.kind is not None:
            details["kind"] = self.kind.value
        if self.label is not None:
            details["label"] = self.label
        if self.property_name is not None:
            details["property"] = self.property_name
        if self.record_index is not None:
            details["record_index"] = self.record_index
        return details


class StagingError(BatchLoadError):
    """Raised when staging rows or creating a bridge fails."""

    category = ErrorCategory.STAGING


class MutationError(BatchLoadError):
    """Raised when a graph creation statement fails."""

    category = ErrorCategory.MUTATION


class EndpointIntegrityError(BatchLoadError):
    """Raised when staged edges reference vertices that do not exist."""

    category = ErrorCategory.ENDPOINT_INTEGRITY

    def __init__(
        self,
        message: str,
        failures: list[EndpointFailure] | None = None,
        missing_ids: list[str] | None = None,
    ):
        super().__init__(message)
        self.failures = failures or []
        self.missing_ids = missing_ids or []

    @classmethod
    def from_failures(cls, failures: list[EndpointFailure]) -> EndpointIntegrityError:
        """Build the summary error for a set of failing edges."""
        missing = sorted({node_id for f in failures for node_id in f.missing_ids})
        message = (
            f"Edge endpoints validation failed: {len(failures)} edge(s) reference "
            f"non-existent vertices. Missing vertex IDs: {', '.join(missing[:10])}"
            + (f" (and {len(missing) - 10} more)" if len(missing) > 10 else "")
        )
        return cls(message, failures=failures, missing_ids=missing)

    def details(self) -> dict[str, Any]:
        return {
            "failed_edge_count": len(self.failures),
            "missing_ids": self.missing_ids,
        }


class LoadTransactionError(BatchLoadError):
    """Raised when beginning, committing or rolling back a transaction fails."""

    category = ErrorCategory.TRANSACTION


class ResourceCleanupError(BatchLoadError):
    """Raised when a staging table or bridge function cannot be dropped.

    The loader downgrades this to a warning.
    """

    category = ErrorCategory.RESOURCE_CLEANUP


class PayloadFormatError(BatchLoadError):
    """Raised when a graph payload cannot be read or has the wrong shape."""

    category = ErrorCategory.PAYLOAD
