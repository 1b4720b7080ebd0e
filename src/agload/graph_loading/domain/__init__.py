"""Domain layer for the graph loading bounded context."""

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
from graph_loading.domain.schema import (
    GraphSchema,
    LabelSchema,
    PropertyDefinition,
    PropertyType,
    SchemaValidator,
    extract_properties,
    to_graph_value,
)
from graph_loading.domain.value_objects import (
    EndpointFailure,
    EntityKind,
    ErrorCategory,
    GraphData,
    KindOutcome,
    LoadError,
    LoadPlan,
    LoadResult,
    PipelineState,
    ProgressEvent,
    ProgressPhase,
    ProgressSink,
    Record,
)

__all__ = [
    "BatchLoadError",
    "EndpointFailure",
    "EndpointIntegrityError",
    "EntityKind",
    "ErrorCategory",
    "GraphData",
    "GraphSchema",
    "KindOutcome",
    "LabelSchema",
    "LoadError",
    "LoadPlan",
    "LoadResult",
    "LoadTransactionError",
    "MutationError",
    "PayloadFormatError",
    "PipelineState",
    "ProgressEvent",
    "ProgressPhase",
    "ProgressSink",
    "PropertyDefinition",
    "PropertyType",
    "Record",
    "RecordValidationError",
    "ResourceCleanupError",
    "SchemaValidator",
    "StagingError",
    "extract_properties",
    "to_graph_value",
]
