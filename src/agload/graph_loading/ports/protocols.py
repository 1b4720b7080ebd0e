"""Protocols for the graph loading bounded context.

These protocols enable dependency inversion: the application layer
depends on these abstractions rather than on the AGE client, the
schema implementation, or psycopg2 directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ContextManager, Mapping, Protocol, Sequence

from graph_loading.domain.schema import LabelSchema
from graph_loading.domain.value_objects import (
    EntityKind,
    KindOutcome,
    LoadPlan,
    ProgressPhase,
    Record,
)

if TYPE_CHECKING:
    from psycopg2.extensions import cursor as PsycopgCursor
    from psycopg2.sql import Composable

    from graph_loading.ports.observability import BatchLoadProbe


@dataclass(frozen=True)
class CypherResult:
    """Container for Cypher query results.

    Every row holds a single agtype value because statements are wrapped
    with a fixed ``(result agtype)`` column list.
    """

    rows: Sequence[tuple[Any, ...]]
    row_count: int


class SchemaProvider(Protocol):
    """Read-only view of the graph schema consumed by the loader."""

    def get_vertex_schema(self, label: str) -> LabelSchema | None:
        """Return the schema of a vertex label, or None if unknown."""
        ...

    def get_edge_schema(self, label: str) -> LabelSchema | None:
        """Return the schema of an edge label, or None if unknown."""
        ...


class RecordValidator(Protocol):
    """Validates records before they are written.

    Implementations raise RecordValidationError on the first violation
    and return silently otherwise.
    """

    def validate_vertex(
        self, label: str, record: Record, index: int | None = None
    ) -> None:
        """Validate a vertex record against its label."""
        ...

    def validate_edge(
        self, label: str, record: Record, index: int | None = None
    ) -> None:
        """Validate an edge record, including presence of from and to."""
        ...


class LoadTransactionProtocol(Protocol):
    """A database transaction that a load runs inside.

    All staging, bridging and mutation statements of one load execute
    against the same transaction.
    """

    @property
    def graph_name(self) -> str:
        """Graph that Cypher statements target by default."""
        ...

    def cursor(self) -> ContextManager[PsycopgCursor]:
        """Open a new cursor bound to the transaction's connection.

        Cursors are not thread-safe; concurrent callers each open their own.
        """
        ...

    def execute_sql(
        self,
        statement: str | Composable,
        params: Sequence[Any] | None = None,
    ) -> list[tuple[Any, ...]]:
        """Execute raw SQL and return any rows it produced."""
        ...

    def execute_cypher(
        self,
        query: str,
        graph_name: str | None = None,
    ) -> CypherResult:
        """Execute a Cypher query wrapped in AGE's cypher() function."""
        ...

    def savepoint(self, name: str) -> None:
        """Establish a savepoint inside the transaction."""
        ...

    def release_savepoint(self, name: str) -> None:
        """Release a savepoint, keeping its work."""
        ...

    def rollback_to_savepoint(self, name: str) -> None:
        """Undo the work done since a savepoint."""
        ...

    def commit(self) -> None:
        """Commit the transaction."""
        ...

    def rollback(self) -> None:
        """Rollback the transaction."""
        ...


class GraphLoadingClientProtocol(Protocol):
    """Graph client capabilities required by the loader."""

    @property
    def graph_name(self) -> str:
        """The name of the graph being operated on."""
        ...

    def begin_transaction(self, graph_name: str | None = None) -> LoadTransactionProtocol:
        """Open a new transaction owned by the caller."""
        ...


class ProgressListener(Protocol):
    """Receives kind-local progress from the ingestion pipeline.

    Percentages are on a 0-100 scale local to one entity kind; the
    listener maps them onto the scale presented to the caller.
    """

    def report(
        self,
        phase: ProgressPhase,
        percentage: int,
        current: int,
        total: int,
        *,
        entity_count: int | None = None,
        current_type: str | None = None,
        current_batch: int | None = None,
        total_batches: int | None = None,
    ) -> None:
        """Publish one progress observation."""
        ...


class IngestionPipelineProtocol(Protocol):
    """Loads every record of one entity kind inside a transaction."""

    def run(
        self,
        kind: EntityKind,
        records_by_label: Mapping[str, Sequence[Record]],
        progress: ProgressListener | None = None,
    ) -> KindOutcome:
        """Validate, stage, bridge, mutate and clean up one kind.

        Never raises for load failures; they are reported on the outcome.
        """
        ...


class IngestionPipelineFactory(Protocol):
    """Creates an ingestion pipeline bound to one load invocation."""

    def create(
        self,
        transaction: LoadTransactionProtocol,
        plan: LoadPlan,
        token: str,
        schema: SchemaProvider,
        validator: RecordValidator,
        probe: BatchLoadProbe,
    ) -> IngestionPipelineProtocol:
        """Build a pipeline for one invocation token."""
        ...
