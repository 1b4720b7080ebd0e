"""Load orchestrator for batch graph loading.

Sequences vertex loading before edge loading, owns the transaction when
the caller does not supply one, republishes progress on a single 0-100
scale, and aggregates the per-kind outcomes into one LoadResult.
"""

from __future__ import annotations

import json
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError

from graph_loading.application.errors import raise_for_result
from graph_loading.application.options import LoadOptions, resolve_plan
from graph_loading.application.progress import ProgressReporter
from graph_loading.domain.exceptions import (
    BatchLoadError,
    LoadTransactionError,
    PayloadFormatError,
)
from graph_loading.domain.schema import SchemaValidator
from graph_loading.domain.value_objects import (
    EntityKind,
    GraphData,
    KindOutcome,
    LoadError,
    LoadPlan,
    LoadResult,
    Record,
)
from graph_loading.ports.observability import BatchLoadProbe
from graph_loading.ports.protocols import (
    GraphLoadingClientProtocol,
    IngestionPipelineFactory,
    LoadTransactionProtocol,
    RecordValidator,
    SchemaProvider,
)
from infrastructure.observability.context import ObservationContext
from infrastructure.settings import LoaderSettings, get_loader_settings

_KIND_ORDER = (EntityKind.VERTEX, EntityKind.EDGE)


class GraphLoader:
    """Loads graph data into the store in vertex-then-edge order.

    The result-returning methods never raise; the ``*_or_raise`` variants
    convert a failed result into the matching BatchLoadError.

    Example:
        loader = create_graph_loader(client, schema)
        result = loader.load_graph_data(
            {"vertices": {"Person": [{"id": "1", "name": "Alice"}]}}
        )
    """

    def __init__(
        self,
        client: GraphLoadingClientProtocol,
        schema: SchemaProvider,
        pipeline_factory: IngestionPipelineFactory,
        probe: BatchLoadProbe,
        settings: LoaderSettings | None = None,
        validator: RecordValidator | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._client = client
        self._schema = schema
        self._pipeline_factory = pipeline_factory
        self._probe = probe
        self._settings = settings or get_loader_settings()
        self._validator = validator or SchemaValidator(schema)
        self._clock = clock

    # =========================================================================
    # Result-returning entry points
    # =========================================================================

    def load_graph_data(
        self,
        data: GraphData | Mapping[str, Any],
        options: LoadOptions | None = None,
    ) -> LoadResult:
        """Load vertices and edges in one invocation."""
        started_at = self._clock()
        try:
            graph_data = self._coerce(data)
        except PayloadFormatError as e:
            return self._failed(started_at, e)
        return self._load(graph_data, options or LoadOptions(), started_at)

    def load_vertices(
        self,
        vertices: Mapping[str, Sequence[Record]],
        options: LoadOptions | None = None,
    ) -> LoadResult:
        """Load vertices only."""
        return self.load_graph_data({"vertices": vertices}, options)

    def load_edges(
        self,
        edges: Mapping[str, Sequence[Record]],
        options: LoadOptions | None = None,
    ) -> LoadResult:
        """Load edges only; their endpoints must already be stored."""
        return self.load_graph_data({"edges": edges}, options)

    def load_from_file(
        self,
        path: str | Path,
        options: LoadOptions | None = None,
    ) -> LoadResult:
        """Read a JSON payload from disk and load it.

        The file holds one object with optional ``vertices`` and ``edges``
        mappings of label to records.
        """
        started_at = self._clock()
        try:
            payload = self._read_payload(Path(path))
        except PayloadFormatError as e:
            return self._failed(started_at, e)
        return self.load_graph_data(payload, options)

    # =========================================================================
    # Throwing adapters
    # =========================================================================

    def load_graph_data_or_raise(
        self,
        data: GraphData | Mapping[str, Any],
        options: LoadOptions | None = None,
    ) -> LoadResult:
        return raise_for_result(self.load_graph_data(data, options))

    def load_vertices_or_raise(
        self,
        vertices: Mapping[str, Sequence[Record]],
        options: LoadOptions | None = None,
    ) -> LoadResult:
        return raise_for_result(self.load_vertices(vertices, options))

    def load_edges_or_raise(
        self,
        edges: Mapping[str, Sequence[Record]],
        options: LoadOptions | None = None,
    ) -> LoadResult:
        return raise_for_result(self.load_edges(edges, options))

    def load_from_file_or_raise(
        self,
        path: str | Path,
        options: LoadOptions | None = None,
    ) -> LoadResult:
        return raise_for_result(self.load_from_file(path, options))

    # =========================================================================
    # Orchestration
    # =========================================================================

    def _load(
        self,
        data: GraphData,
        options: LoadOptions,
        started_at: float,
    ) -> LoadResult:
        plan = resolve_plan(self._settings, options, self._client.graph_name)
        token = uuid.uuid4().hex
        context = ObservationContext(load_id=token, graph_name=plan.graph_name)
        probe = self._probe.with_context(context)
        probe.load_started(
            vertex_count=data.record_count(EntityKind.VERTEX),
            edge_count=data.record_count(EntityKind.EDGE),
        )

        kinds = [kind for kind in _KIND_ORDER if data.record_count(kind) > 0]
        if not kinds:
            result = self._result(started_at, [])
            probe.load_completed(result)
            return result

        owns_transaction = options.transaction is None
        try:
            if owns_transaction:
                transaction = self._client.begin_transaction(plan.graph_name)
            else:
                transaction = options.transaction
        except Exception as e:
            error = LoadTransactionError(f"Failed to begin transaction: {e}", cause=e)
            result = self._result(started_at, [], errors=[error.to_load_error()])
            probe.load_failed(result)
            return result

        outcomes: list[KindOutcome] = []
        extra_errors: list[LoadError] = []
        extra_warnings: list[str] = []
        try:
            outcomes = self._run_kinds(
                data, kinds, transaction, plan, token, options, context, started_at
            )
        except Exception as e:
            error = BatchLoadError(f"Unexpected error during graph load: {e}", cause=e)
            extra_errors.append(error.to_load_error())

        succeeded = not extra_errors and all(outcome.succeeded for outcome in outcomes)

        if owns_transaction:
            if succeeded:
                try:
                    transaction.commit()
                except Exception as e:
                    error = LoadTransactionError("Failed to commit transaction", cause=e)
                    extra_errors.append(error.to_load_error())
                    self._rollback(transaction, extra_warnings)
            else:
                self._rollback(transaction, extra_warnings)

        result = self._result(
            started_at,
            outcomes,
            errors=extra_errors,
            warnings=extra_warnings,
        )
        if result.success:
            probe.load_completed(result)
        else:
            probe.load_failed(result)
        return result

    def _run_kinds(
        self,
        data: GraphData,
        kinds: list[EntityKind],
        transaction: LoadTransactionProtocol,
        plan: LoadPlan,
        token: str,
        options: LoadOptions,
        context: ObservationContext,
        started_at: float,
    ) -> list[KindOutcome]:
        outcomes = []
        floor = 0
        for index, kind in enumerate(kinds):
            probe = self._probe.with_context(context.with_kind(kind.value))
            pipeline = self._pipeline_factory.create(
                transaction=transaction,
                plan=plan,
                token=token,
                schema=self._schema,
                validator=self._validator,
                probe=probe,
            )
            start, end = self._band(index, len(kinds))
            reporter = ProgressReporter(
                options.on_progress,
                kind,
                probe,
                start=start,
                end=end,
                started_at=started_at,
                floor=floor,
                clock=self._clock,
            )
            outcome = pipeline.run(kind, data.records_for(kind), reporter)
            outcomes.append(outcome)
            floor = reporter.last_percentage
            if not outcome.succeeded:
                break
        return outcomes

    @staticmethod
    def _band(index: int, kind_count: int) -> tuple[int, int]:
        if kind_count == 1:
            return 0, 100
        return (0, 50) if index == 0 else (50, 100)

    @staticmethod
    def _rollback(transaction: LoadTransactionProtocol, warnings: list[str]) -> None:
        try:
            transaction.rollback()
        except Exception as e:
            warnings.append(f"Rollback error: {e}")

    # =========================================================================
    # Payload handling
    # =========================================================================

    @staticmethod
    def _coerce(data: GraphData | Mapping[str, Any]) -> GraphData:
        if isinstance(data, GraphData):
            return data
        if not isinstance(data, Mapping):
            raise PayloadFormatError(
                f"Graph data must be a mapping, got {type(data).__name__}"
            )
        try:
            return GraphData.model_validate(dict(data))
        except ValidationError as e:
            raise PayloadFormatError(f"Invalid graph data: {e}", cause=e) from e

    @staticmethod
    def _read_payload(path: Path) -> Any:
        if not path.exists():
            raise PayloadFormatError(f"File not found: {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PayloadFormatError(f"Failed to read file {path}: {e}", cause=e) from e
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise PayloadFormatError(
                f"Failed to parse JSON from {path}: {e}", cause=e
            ) from e
        if not isinstance(payload, dict):
            raise PayloadFormatError(
                f"Graph data file {path} must contain a JSON object"
            )
        return payload

    # =========================================================================
    # Results
    # =========================================================================

    def _failed(self, started_at: float, error: BatchLoadError) -> LoadResult:
        result = self._result(started_at, [], errors=[error.to_load_error()])
        self._probe.load_failed(result)
        return result

    def _result(
        self,
        started_at: float,
        outcomes: list[KindOutcome],
        errors: list[LoadError] | None = None,
        warnings: list[str] | None = None,
    ) -> LoadResult:
        vertex = next((o for o in outcomes if o.kind == EntityKind.VERTEX), None)
        edge = next((o for o in outcomes if o.kind == EntityKind.EDGE), None)

        all_errors = [error for outcome in outcomes for error in outcome.errors]
        all_errors.extend(errors or [])
        all_warnings = [warning for outcome in outcomes for warning in outcome.warnings]
        all_warnings.extend(warnings or [])

        success = not all_errors and all(outcome.succeeded for outcome in outcomes)

        return LoadResult(
            success=success,
            vertex_count=vertex.count if vertex else 0,
            edge_count=edge.count if edge else 0,
            vertex_types=list(vertex.types) if vertex else [],
            edge_types=list(edge.types) if edge else [],
            errors=all_errors or None,
            warnings=all_warnings or None,
            duration_ms=(self._clock() - started_at) * 1000,
        )
