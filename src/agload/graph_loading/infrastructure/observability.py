"""Domain probes for graph loading observability.

These probes capture domain-significant events of the AGE client and the
batch loading pipeline, following the Domain Oriented Observability pattern.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from graph_loading.domain.value_objects import LoadResult, PipelineState
    from infrastructure.observability.context import ObservationContext


class GraphClientProbe(Protocol):
    """Domain probe for graph client observability."""

    def connected_to_graph(self, graph_name: str) -> None:
        """Record successful connection to a graph."""
        ...

    def graph_created(self, graph_name: str) -> None:
        """Record that a new graph was created."""
        ...

    def with_context(self, context: ObservationContext) -> GraphClientProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultGraphClientProbe:
    """Default implementation of GraphClientProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultGraphClientProbe:
        """Create a new probe with observation context bound."""
        return DefaultGraphClientProbe(logger=self._logger, context=context)

    def connected_to_graph(self, graph_name: str) -> None:
        self._logger.info(
            "graph_connected",
            graph_name=graph_name,
            **self._get_context_kwargs(),
        )

    def graph_created(self, graph_name: str) -> None:
        self._logger.info(
            "graph_created",
            graph_name=graph_name,
            **self._get_context_kwargs(),
        )


class DefaultBatchLoadProbe:
    """Default implementation of BatchLoadProbe using structlog.

    Supports observation context so that every event of one load carries
    the load id and graph name.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultBatchLoadProbe:
        """Create a new probe with observation context bound."""
        return DefaultBatchLoadProbe(logger=self._logger, context=context)

    def load_started(self, vertex_count: int, edge_count: int) -> None:
        self._logger.info(
            "graph_load_started",
            vertex_count=vertex_count,
            edge_count=edge_count,
            **self._get_context_kwargs(),
        )

    def state_changed(self, kind: str, state: PipelineState) -> None:
        self._logger.debug(
            "pipeline_state_changed",
            entity_kind=kind,
            state=state.value,
            **self._get_context_kwargs(),
        )

    def staging_table_created(self, table_name: str, kind: str) -> None:
        self._logger.debug(
            "staging_table_created",
            table_name=table_name,
            entity_kind=kind,
            **self._get_context_kwargs(),
        )

    def records_staged(
        self,
        table_name: str,
        label: str,
        row_count: int,
        strategy: str,
        duration_ms: float,
    ) -> None:
        self._logger.debug(
            "records_staged",
            table_name=table_name,
            label=label,
            row_count=row_count,
            strategy=strategy,
            duration_ms=round(duration_ms, 2),
            **self._get_context_kwargs(),
        )

    def unknown_label(self, kind: str, label: str) -> None:
        self._logger.warning(
            "label_not_in_schema",
            entity_kind=kind,
            label=label,
            **self._get_context_kwargs(),
        )

    def edge_skipped(self, label: str, index: int) -> None:
        self._logger.warning(
            "edge_missing_endpoint_skipped",
            label=label,
            record_index=index,
            **self._get_context_kwargs(),
        )

    def endpoint_check_failed(self, failed_count: int, missing_ids: list[str]) -> None:
        self._logger.warning(
            "endpoint_check_failed",
            failed_count=failed_count,
            missing_ids=missing_ids[:10],
            **self._get_context_kwargs(),
        )

    def bridge_created(self, function_name: str, label: str) -> None:
        self._logger.debug(
            "bridge_created",
            function_name=function_name,
            label=label,
            **self._get_context_kwargs(),
        )

    def entities_created(
        self,
        kind: str,
        label: str,
        count: int,
        duration_ms: float,
    ) -> None:
        self._logger.info(
            "graph_entities_created",
            entity_kind=kind,
            label=label,
            count=count,
            duration_ms=round(duration_ms, 2),
            **self._get_context_kwargs(),
        )

    def cleanup_failed(self, resource: str, error: Exception) -> None:
        self._logger.warning(
            "cleanup_failed",
            resource=resource,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def progress_sink_failed(self, error: Exception) -> None:
        self._logger.warning(
            "progress_callback_failed",
            error=str(error),
            **self._get_context_kwargs(),
        )

    def load_completed(self, result: LoadResult) -> None:
        self._logger.info(
            "graph_load_completed",
            vertex_count=result.vertex_count,
            edge_count=result.edge_count,
            warning_count=len(result.warnings or []),
            duration_ms=round(result.duration_ms, 2),
            **self._get_context_kwargs(),
        )

    def load_failed(self, result: LoadResult) -> None:
        self._logger.error(
            "graph_load_failed",
            vertex_count=result.vertex_count,
            edge_count=result.edge_count,
            errors=[error.message for error in result.errors or []],
            duration_ms=round(result.duration_ms, 2),
            **self._get_context_kwargs(),
        )
