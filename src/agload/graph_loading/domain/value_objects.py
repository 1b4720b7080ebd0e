"""Domain value objects for the graph loading bounded context.

These are immutable data structures that represent domain concepts
within the loading context. They have no identity - equality is based
on their attribute values.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

# Open-ended property bag of a single vertex or edge record. For edges the
# reserved keys "from" and "to" carry the endpoint vertex ids.
Record: TypeAlias = dict[str, Any]

EDGE_FROM_KEY = "from"
EDGE_TO_KEY = "to"
EDGE_ENDPOINT_KEYS: frozenset[str] = frozenset({EDGE_FROM_KEY, EDGE_TO_KEY})
VERTEX_ID_KEY = "id"


class EntityKind(str, Enum):
    """The two entity categories processed by the pipeline."""

    VERTEX = "vertex"
    EDGE = "edge"

    @property
    def plural(self) -> str:
        return "vertices" if self is EntityKind.VERTEX else "edges"


class ProgressPhase(str, Enum):
    """Phase reported by a progress event."""

    VALIDATION = "validation"
    STORING = "storing"
    CREATING = "creating"


class PipelineState(str, Enum):
    """States of the per-kind ingestion state machine."""

    VALIDATING = "validating"
    STAGING = "staging"
    BRIDGING = "bridging"
    MUTATING = "mutating"
    CLEANING_UP = "cleaning_up"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ErrorCategory(str, Enum):
    """Category of a load error, one per failure class of the loader."""

    VALIDATION = "validation"
    STAGING = "staging"
    MUTATION = "mutation"
    ENDPOINT_INTEGRITY = "endpoint_integrity"
    TRANSACTION = "transaction"
    RESOURCE_CLEANUP = "resource_cleanup"
    PAYLOAD = "payload"
    UNEXPECTED = "unexpected"


class GraphData(BaseModel):
    """Graph payload: records grouped by label, separately per kind.

    Order of labels is irrelevant; order of records within a label is
    preserved and determines staging order.

    Attributes:
        vertices: Mapping of vertex label to its records
        edges: Mapping of edge label to its records
    """

    model_config = ConfigDict(frozen=True)

    vertices: dict[str, list[Record]] = Field(default_factory=dict)
    edges: dict[str, list[Record]] = Field(default_factory=dict)

    def records_for(self, kind: EntityKind) -> dict[str, list[Record]]:
        """Return the label -> records mapping for one kind."""
        return self.vertices if kind == EntityKind.VERTEX else self.edges

    def record_count(self, kind: EntityKind) -> int:
        """Total number of records of one kind across all labels."""
        return sum(len(records) for records in self.records_for(kind).values())


class EndpointFailure(BaseModel):
    """A staged edge whose endpoints do not both resolve to stored vertices."""

    model_config = ConfigDict(frozen=True)

    seq: int
    label: str
    from_id: str
    to_id: str
    from_exists: bool
    to_exists: bool

    @property
    def missing_ids(self) -> list[str]:
        """Endpoint ids that did not resolve."""
        missing = []
        if not self.from_exists:
            missing.append(self.from_id)
        if not self.to_exists:
            missing.append(self.to_id)
        return missing

    def describe(self) -> str:
        return (
            f"Edge endpoint validation failed for '{self.label}': "
            f"from_id={self.from_id} (exists: {str(self.from_exists).lower()}), "
            f"to_id={self.to_id} (exists: {str(self.to_exists).lower()})"
        )


class LoadError(BaseModel):
    """Structured error carried by a LoadResult.

    Attributes:
        category: Failure class of the error
        message: Human-readable description
        details: Machine-readable context (label, ids, cause, ...)
    """

    model_config = ConfigDict(frozen=True)

    category: ErrorCategory
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class LoadResult(BaseModel):
    """Outcome of one loader invocation.

    Empty error and warning lists are represented as None rather than
    as empty collections.

    Attributes:
        success: Whether every requested kind was loaded
        vertex_count: Number of vertices created
        edge_count: Number of edges created
        vertex_types: Vertex labels that were processed
        edge_types: Edge labels that were processed
        errors: Errors encountered, or None
        warnings: Warnings encountered, or None
        duration_ms: Wall-clock duration of the invocation
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    vertex_count: int = 0
    edge_count: int = 0
    vertex_types: list[str] = Field(default_factory=list)
    edge_types: list[str] = Field(default_factory=list)
    errors: list[LoadError] | None = None
    warnings: list[str] | None = None
    duration_ms: float = 0.0


class ProgressEvent(BaseModel):
    """A single progress notification delivered to the caller's sink.

    Attributes:
        phase: Current phase (validation, storing or creating)
        current: Entities processed so far in this phase
        total: Entities to process in this phase
        percentage: Overall completion on a 0-100 scale
        vertex_count: Vertices handled so far (vertex loading only)
        edge_count: Edges handled so far (edge loading only)
        current_type: Label currently being processed
        current_batch: 1-based batch number within the current label
        total_batches: Number of batches for the current label
        elapsed_ms: Time since the invocation started
        estimated_remaining_ms: Linear estimate of the remaining time
    """

    model_config = ConfigDict(frozen=True)

    phase: ProgressPhase
    current: int
    total: int
    percentage: int = Field(ge=0, le=100)
    vertex_count: int | None = None
    edge_count: int | None = None
    current_type: str | None = None
    current_batch: int | None = None
    total_batches: int | None = None
    elapsed_ms: float | None = None
    estimated_remaining_ms: float | None = None


ProgressSink: TypeAlias = Callable[[ProgressEvent], None]


class LoadPlan(BaseModel):
    """Fully resolved, immutable configuration of one load invocation.

    Built once per call from the loader settings and the caller's options.
    """

    model_config = ConfigDict(frozen=True)

    graph_name: str
    batch_size: int = Field(default=1000, ge=1)
    validate_data: bool = True
    staging_namespace: str = "public"
    parallel_inserts: bool = False
    max_parallel_batches: int = Field(default=4, ge=1)
    use_bulk_insert: bool = False
    use_streaming: bool = False
    large_dataset_threshold: int = Field(default=10000, ge=1)


class KindOutcome(BaseModel):
    """Result of running the ingestion pipeline for one entity kind.

    A failed kind reports a zero count and no types, since no partial
    creation is kept.
    """

    model_config = ConfigDict(frozen=True)

    kind: EntityKind
    state: PipelineState
    count: int = 0
    types: list[str] = Field(default_factory=list)
    errors: list[LoadError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.SUCCEEDED
