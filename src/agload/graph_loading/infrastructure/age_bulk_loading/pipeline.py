"""Batch ingestion pipeline for Apache AGE.

Runs the per-kind state machine:

    VALIDATING -> STAGING -> BRIDGING (edges only) -> MUTATING
        -> CLEANING_UP -> SUCCEEDED | FAILED

All database work of one kind happens inside a savepoint, so a failure
can be undone without aborting a caller-supplied transaction and cleanup
statements can still run afterwards.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Sequence

import psycopg2

from graph_loading.domain.exceptions import (
    BatchLoadError,
    EndpointIntegrityError,
    MutationError,
    RecordValidationError,
    ResourceCleanupError,
    StagingError,
)
from graph_loading.domain.schema import LabelSchema, extract_properties, to_graph_value
from graph_loading.domain.value_objects import (
    EDGE_FROM_KEY,
    EDGE_TO_KEY,
    EntityKind,
    ErrorCategory,
    KindOutcome,
    LoadError,
    LoadPlan,
    PipelineState,
    ProgressPhase,
    Record,
)
from graph_loading.infrastructure.observability import DefaultBatchLoadProbe
from graph_loading.ports.observability import BatchLoadProbe
from graph_loading.ports.protocols import (
    LoadTransactionProtocol,
    ProgressListener,
    RecordValidator,
    SchemaProvider,
)
from infrastructure.database.exceptions import DatabaseError

from .bridge import BridgeHandle, bridge_function_name, create_bridge, drop_bridge
from .queries import MutationQueryBuilder
from .schedulers import BatchReport, select_scheduler
from .staging import (
    EDGE_COLUMNS,
    VERTEX_COLUMNS,
    InsertMode,
    Row,
    StagedLabel,
    StagingTableManager,
    edge_row,
    vertex_row,
)
from .utils import parse_agtype_count, validate_label_name

# Kind-local progress bands
_VALIDATED_PERCENT = 33
_STAGED_PERCENT = 66
_DONE_PERCENT = 100

_DATABASE_ERRORS = (DatabaseError, psycopg2.Error)


@dataclass
class _KindRun:
    """Mutable accumulator for one run of the state machine."""

    kind: EntityKind
    state: PipelineState = PipelineState.VALIDATING
    count: int = 0
    types: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    processed: int = 0


class BatchIngestionPipeline:
    """Loads the records of one entity kind through staging and bridges.

    One pipeline instance is bound to a single load invocation; its token
    names every staging table, bridge function and savepoint it creates.
    """

    def __init__(
        self,
        transaction: LoadTransactionProtocol,
        plan: LoadPlan,
        token: str,
        schema: SchemaProvider,
        validator: RecordValidator,
        probe: BatchLoadProbe | None = None,
        staging: StagingTableManager | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._transaction = transaction
        self._plan = plan
        self._token = token
        self._schema = schema
        self._validator = validator
        self._probe = probe or DefaultBatchLoadProbe()
        self._staging = staging or StagingTableManager()
        self._clock = clock
        self._bridge_index = 0

    def run(
        self,
        kind: EntityKind,
        records_by_label: Mapping[str, Sequence[Record]],
        progress: ProgressListener | None = None,
    ) -> KindOutcome:
        """Load every record of one kind.

        Labels with zero records are skipped. Failures are reported on the
        returned outcome, never raised.
        """
        run = _KindRun(kind=kind)
        labels = [
            (label, records)
            for label, records in records_by_label.items()
            if len(records) > 0
        ]
        if not labels:
            run.state = PipelineState.SUCCEEDED
            return self._outcome(run)

        total = sum(len(records) for _, records in labels)

        self._enter(run, PipelineState.VALIDATING)
        try:
            self._validate(kind, labels)
        except RecordValidationError as e:
            return self._fail(run, [e.to_load_error()])
        self._report(
            progress, run, ProgressPhase.VALIDATION, _VALIDATED_PERCENT, total, total
        )

        savepoint = f"agload_{kind.value}_{self._token}"
        try:
            self._transaction.savepoint(savepoint)
        except _DATABASE_ERRORS as e:
            error = StagingError(
                f"Failed to open savepoint for {kind.plural}: {e}", cause=e
            )
            return self._fail(run, [error.to_load_error()])

        table_name: str | None = None
        live_bridges: list[BridgeHandle] = []
        try:
            self._enter(run, PipelineState.STAGING)
            table_name = self._create_staging_table(kind)
            staged = self._stage(run, table_name, labels, total, progress)

            if kind == EntityKind.EDGE:
                self._enter(run, PipelineState.BRIDGING)
                self._check_endpoints(run, table_name)
                self._report(
                    progress,
                    run,
                    ProgressPhase.STORING,
                    _STAGED_PERCENT,
                    run.processed,
                    total,
                )

            self._enter(run, PipelineState.MUTATING)
            self._mutate(run, table_name, staged, total, live_bridges, progress)
        except Exception as e:
            error = self._classify(run, e)
            recovered = self._rollback_to_savepoint(run, savepoint)
            self._enter(run, PipelineState.CLEANING_UP)
            if recovered:
                self._cleanup(run, table_name, live_bridges)
            return self._fail(run, self._errors_for(error))

        self._enter(run, PipelineState.CLEANING_UP)
        self._cleanup(run, table_name, live_bridges)
        try:
            self._transaction.release_savepoint(savepoint)
        except _DATABASE_ERRORS as e:
            run.warnings.append(f"Failed to release savepoint {savepoint}: {e}")
        self._enter(run, PipelineState.SUCCEEDED)
        return self._outcome(run)

    # =========================================================================
    # Validating
    # =========================================================================

    def _validate(
        self, kind: EntityKind, labels: list[tuple[str, Sequence[Record]]]
    ) -> None:
        validate = (
            self._validator.validate_vertex
            if kind == EntityKind.VERTEX
            else self._validator.validate_edge
        )
        for label, records in labels:
            try:
                validate_label_name(label)
            except ValueError as e:
                raise RecordValidationError(str(e), kind=kind, label=label) from e

            if not self._plan.validate_data:
                continue
            for index, record in enumerate(records):
                validate(label, record, index)

    # =========================================================================
    # Staging
    # =========================================================================

    def _create_staging_table(self, kind: EntityKind) -> str:
        with self._transaction.cursor() as cursor:
            if kind == EntityKind.VERTEX:
                table_name = self._staging.create_vertex_staging_table(cursor, self._token)
            else:
                table_name = self._staging.create_edge_staging_table(cursor, self._token)
            self._staging.create_label_index(cursor, table_name)
        self._probe.staging_table_created(table_name, kind.value)
        return table_name

    def _label_schema(self, kind: EntityKind, label: str) -> LabelSchema | None:
        if kind == EntityKind.VERTEX:
            return self._schema.get_vertex_schema(label)
        return self._schema.get_edge_schema(label)

    def _stage(
        self,
        run: _KindRun,
        table_name: str,
        labels: list[tuple[str, Sequence[Record]]],
        total: int,
        progress: ProgressListener | None,
    ) -> list[StagedLabel]:
        kind = run.kind
        mode = InsertMode.BULK if self._plan.use_bulk_insert else InsertMode.SEQUENTIAL
        columns = VERTEX_COLUMNS if kind == EntityKind.VERTEX else EDGE_COLUMNS
        staged_labels = []

        def insert_batch(batch: list[Row]) -> int:
            with self._transaction.cursor() as cursor:
                return self._staging.insert_rows(cursor, table_name, columns, batch, mode)

        for label, records in labels:
            label_schema = self._label_schema(kind, label)
            if label_schema is None:
                run.warnings.append(
                    f"{kind.value.capitalize()} type '{label}' not found in schema"
                )
                self._probe.unknown_label(kind.value, label)

            staged = StagedLabel(label=label)
            scheduler = select_scheduler(self._plan, len(records))

            def on_batch(report: BatchReport, label: str = label) -> None:
                run.processed += report.inserted
                self._report(
                    progress,
                    run,
                    ProgressPhase.STORING,
                    _VALIDATED_PERCENT
                    + round(
                        run.processed / total * (_STAGED_PERCENT - _VALIDATED_PERCENT)
                    ),
                    run.processed,
                    total,
                    current_type=label,
                    current_batch=report.number,
                    total_batches=report.total_batches,
                )

            started = self._clock()
            staged.row_count = scheduler.run(
                self._rows(kind, label, records, label_schema, staged),
                insert_batch,
                on_batch,
                expected=len(records),
            )
            self._probe.records_staged(
                table_name,
                label,
                staged.row_count,
                f"{scheduler.name}/{mode.value}",
                (self._clock() - started) * 1000,
            )

            if staged.skipped:
                warning = f"Edge in '{label}' missing from or to property"
                if staged.skipped > 1:
                    warning += f" ({staged.skipped} records skipped)"
                run.warnings.append(warning)
            staged_labels.append(staged)

        return staged_labels

    def _rows(
        self,
        kind: EntityKind,
        label: str,
        records: Sequence[Record],
        label_schema: LabelSchema | None,
        staged: StagedLabel,
    ) -> Iterator[Row]:
        for index, record in enumerate(records):
            if kind == EntityKind.VERTEX:
                properties = extract_properties(record, label_schema, kind)
                staged.note_properties(properties)
                yield vertex_row(label, properties)
                continue

            from_ref = record.get(EDGE_FROM_KEY)
            to_ref = record.get(EDGE_TO_KEY)
            if from_ref in (None, "") or to_ref in (None, ""):
                staged.skipped += 1
                self._probe.edge_skipped(label, index)
                continue

            properties = extract_properties(record, label_schema, kind)
            staged.note_properties(properties)
            yield edge_row(
                label, to_graph_value(from_ref), to_graph_value(to_ref), properties
            )

    # =========================================================================
    # Bridging
    # =========================================================================

    def _check_endpoints(self, run: _KindRun, table_name: str) -> None:
        with self._transaction.cursor() as cursor:
            failures = self._staging.find_unresolved_endpoints(
                cursor, table_name, self._plan.graph_name
            )
        if not failures:
            return

        run.warnings.extend(failure.describe() for failure in failures)
        error = EndpointIntegrityError.from_failures(failures)
        self._probe.endpoint_check_failed(len(failures), error.missing_ids)
        raise error

    # =========================================================================
    # Mutating
    # =========================================================================

    def _mutate(
        self,
        run: _KindRun,
        table_name: str,
        staged_labels: list[StagedLabel],
        total: int,
        live_bridges: list[BridgeHandle],
        progress: ProgressListener | None,
    ) -> None:
        kind = run.kind
        labels_to_create = [staged for staged in staged_labels if staged.row_count > 0]
        if not labels_to_create:
            self._report(
                progress, run, ProgressPhase.CREATING, _DONE_PERCENT, 0, total
            )
            return

        for done, staged in enumerate(labels_to_create, start=1):
            self._bridge_index += 1
            name = bridge_function_name(self._token, kind, self._bridge_index)
            with self._transaction.cursor() as cursor:
                handle = create_bridge(
                    cursor,
                    self._plan.staging_namespace,
                    name,
                    table_name,
                    kind,
                    staged.label,
                )
            live_bridges.append(handle)
            self._probe.bridge_created(name, staged.label)

            if kind == EntityKind.VERTEX:
                statement = MutationQueryBuilder.vertex_creation_statement(
                    handle.reference, staged.label, staged.ordered_property_names
                )
            else:
                statement = MutationQueryBuilder.edge_creation_statement(
                    handle.reference, staged.label, staged.ordered_property_names
                )

            started = self._clock()
            try:
                result = self._transaction.execute_cypher(
                    statement, graph_name=self._plan.graph_name
                )
                created = parse_agtype_count(result.rows)
            except _DATABASE_ERRORS as e:
                raise MutationError(
                    f"Failed to create {kind.plural} of type '{staged.label}': {e}",
                    cause=e,
                ) from e
            except ValueError as e:
                raise MutationError(
                    f"Unexpected result creating {kind.plural} of type '{staged.label}': {e}",
                    cause=e,
                ) from e

            if kind == EntityKind.EDGE and created != staged.row_count:
                raise MutationError(
                    f"Created {created} of {staged.row_count} edges of type "
                    f"'{staged.label}'; unmatched endpoints would leave a partial "
                    "edge set"
                )

            self._release_bridge(run, handle)
            live_bridges.remove(handle)

            if created != staged.row_count:
                run.warnings.append(
                    f"Created {created} of {staged.row_count} {kind.plural} "
                    f"of type '{staged.label}'"
                )
            run.count += created
            run.types.append(staged.label)
            self._probe.entities_created(
                kind.value, staged.label, created, (self._clock() - started) * 1000
            )
            self._report(
                progress,
                run,
                ProgressPhase.CREATING,
                _STAGED_PERCENT
                + round(done / len(labels_to_create) * (_DONE_PERCENT - _STAGED_PERCENT)),
                run.count,
                total,
                current_type=staged.label,
            )

    # =========================================================================
    # Cleaning up
    # =========================================================================

    def _release_bridge(self, run: _KindRun, handle: BridgeHandle) -> None:
        self._best_effort(
            run,
            f"bridge function {handle.reference}",
            lambda cursor: drop_bridge(cursor, handle),
        )

    def _cleanup(
        self,
        run: _KindRun,
        table_name: str | None,
        live_bridges: list[BridgeHandle],
    ) -> None:
        for handle in list(live_bridges):
            self._release_bridge(run, handle)
            live_bridges.remove(handle)
        if table_name is not None:
            self._best_effort(
                run,
                f"staging table {table_name}",
                lambda cursor: self._staging.drop_table(cursor, table_name),
            )

    def _best_effort(
        self,
        run: _KindRun,
        resource: str,
        action: Callable[[Any], None],
    ) -> None:
        """Run a cleanup statement without risking the enclosing transaction.

        The statement runs inside its own savepoint; a failure is rolled back
        to it and downgraded to a warning.
        """
        savepoint = f"agload_cleanup_{self._token}"
        try:
            self._transaction.savepoint(savepoint)
            with self._transaction.cursor() as cursor:
                action(cursor)
            self._transaction.release_savepoint(savepoint)
        except _DATABASE_ERRORS as e:
            cleanup_error = ResourceCleanupError(
                f"Failed to drop {resource}: {e}", cause=e
            )
            run.warnings.append(cleanup_error.message)
            self._probe.cleanup_failed(resource, e)
            try:
                self._transaction.rollback_to_savepoint(savepoint)
                self._transaction.release_savepoint(savepoint)
            except _DATABASE_ERRORS as rollback_error:
                run.warnings.append(
                    f"Failed to recover after cleanup of {resource}: {rollback_error}"
                )

    def _rollback_to_savepoint(self, run: _KindRun, savepoint: str) -> bool:
        try:
            self._transaction.rollback_to_savepoint(savepoint)
            self._transaction.release_savepoint(savepoint)
        except _DATABASE_ERRORS as e:
            run.warnings.append(f"Savepoint rollback error: {e}")
            return False
        return True

    # =========================================================================
    # Outcome
    # =========================================================================

    def _classify(self, run: _KindRun, error: Exception) -> BatchLoadError:
        if isinstance(error, BatchLoadError):
            return error
        if isinstance(error, _DATABASE_ERRORS):
            if run.state == PipelineState.MUTATING:
                return MutationError(
                    f"Database error while creating {run.kind.plural}: {error}",
                    cause=error,
                )
            return StagingError(
                f"Database error while staging {run.kind.plural}: {error}",
                cause=error,
            )
        return BatchLoadError(
            f"Unexpected error while loading {run.kind.plural}: {error}",
            cause=error,
        )

    @staticmethod
    def _errors_for(error: BatchLoadError) -> list[LoadError]:
        if not isinstance(error, EndpointIntegrityError):
            return [error.to_load_error()]

        per_edge = [
            LoadError(
                category=ErrorCategory.ENDPOINT_INTEGRITY,
                message=failure.describe(),
                details={
                    "label": failure.label,
                    "from_id": failure.from_id,
                    "to_id": failure.to_id,
                    "missing_ids": failure.missing_ids,
                },
            )
            for failure in error.failures
        ]
        return [*per_edge, error.to_load_error()]

    def _enter(self, run: _KindRun, state: PipelineState) -> None:
        run.state = state
        self._probe.state_changed(run.kind.value, state)

    def _fail(self, run: _KindRun, errors: list[LoadError]) -> KindOutcome:
        self._enter(run, PipelineState.FAILED)
        return KindOutcome(
            kind=run.kind,
            state=PipelineState.FAILED,
            errors=errors,
            warnings=run.warnings,
        )

    @staticmethod
    def _outcome(run: _KindRun) -> KindOutcome:
        return KindOutcome(
            kind=run.kind,
            state=run.state,
            count=run.count,
            types=run.types,
            warnings=run.warnings,
        )

    def _report(
        self,
        progress: ProgressListener | None,
        run: _KindRun,
        phase: ProgressPhase,
        percentage: int,
        current: int,
        total: int,
        current_type: str | None = None,
        current_batch: int | None = None,
        total_batches: int | None = None,
    ) -> None:
        if progress is None:
            return
        progress.report(
            phase,
            percentage,
            current,
            total,
            entity_count=run.count,
            current_type=current_type,
            current_batch=current_batch,
            total_batches=total_batches,
        )


class AgeIngestionPipelineFactory:
    """Creates AGE ingestion pipelines for the load orchestrator."""

    def __init__(self, staging: StagingTableManager | None = None):
        self._staging = staging or StagingTableManager()

    def create(
        self,
        transaction: LoadTransactionProtocol,
        plan: LoadPlan,
        token: str,
        schema: SchemaProvider,
        validator: RecordValidator,
        probe: BatchLoadProbe,
    ) -> BatchIngestionPipeline:
        return BatchIngestionPipeline(
            transaction=transaction,
            plan=plan,
            token=token,
            schema=schema,
            validator=validator,
            probe=probe,
            staging=self._staging,
        )
