"""Observability protocol for batch graph loading.

The probe captures events of the ingestion pipeline and the load
orchestrator: staging, bridging, endpoint checks, mutations, cleanup and
the outcome of each invocation.

Following Domain Oriented Observability pattern:
https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from graph_loading.domain.value_objects import LoadResult, PipelineState
    from infrastructure.observability.context import ObservationContext


class BatchLoadProbe(Protocol):
    """Probe for batch graph loading operations.

    All methods should be non-blocking and safe to call in hot paths.
    """

    def load_started(self, vertex_count: int, edge_count: int) -> None:
        """Record that a load invocation started.

        Args:
            vertex_count: Vertex records supplied by the caller
            edge_count: Edge records supplied by the caller
        """
        ...

    def state_changed(self, kind: str, state: PipelineState) -> None:
        """Record a transition of the per-kind state machine.

        Args:
            kind: "vertex" or "edge"
            state: The state entered
        """
        ...

    def staging_table_created(self, table_name: str, kind: str) -> None:
        """Record that a staging table was created.

        Args:
            table_name: Name of the staging table
            kind: "vertex" or "edge"
        """
        ...

    def records_staged(
        self,
        table_name: str,
        label: str,
        row_count: int,
        strategy: str,
        duration_ms: float,
    ) -> None:
        """Record that the records of one label were staged.

        Args:
            table_name: Name of the staging table
            label: Label whose records were staged
            row_count: Rows inserted
            strategy: Scheduler and insert mode used
            duration_ms: Time taken to stage the label
        """
        ...

    def unknown_label(self, kind: str, label: str) -> None:
        """Record that a label is loaded without a schema."""
        ...

    def edge_skipped(self, label: str, index: int) -> None:
        """Record that an edge without endpoints was not staged."""
        ...

    def endpoint_check_failed(self, failed_count: int, missing_ids: list[str]) -> None:
        """Record that staged edges reference non-existent vertices.

        Args:
            failed_count: Number of offending edges
            missing_ids: Distinct vertex ids that were not found
        """
        ...

    def bridge_created(self, function_name: str, label: str) -> None:
        """Record that a bridge function was created."""
        ...

    def entities_created(
        self,
        kind: str,
        label: str,
        count: int,
        duration_ms: float,
    ) -> None:
        """Record that graph entities of one label were created.

        Args:
            kind: "vertex" or "edge"
            label: Label of the created entities
            count: Entities reported by the creation statement
            duration_ms: Time taken by the creation statement
        """
        ...

    def cleanup_failed(self, resource: str, error: Exception) -> None:
        """Record that a staging table or bridge could not be dropped."""
        ...

    def progress_sink_failed(self, error: Exception) -> None:
        """Record that the caller's progress callback raised."""
        ...

    def load_completed(self, result: LoadResult) -> None:
        """Record a successful load invocation."""
        ...

    def load_failed(self, result: LoadResult) -> None:
        """Record a failed load invocation."""
        ...

    def with_context(self, context: ObservationContext) -> BatchLoadProbe:
        """Create a new probe with observation context bound."""
        ...
