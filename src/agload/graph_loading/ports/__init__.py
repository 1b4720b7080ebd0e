"""Ports for the graph loading bounded context."""

from graph_loading.ports.observability import BatchLoadProbe
from graph_loading.ports.protocols import (
    CypherResult,
    GraphLoadingClientProtocol,
    IngestionPipelineFactory,
    IngestionPipelineProtocol,
    LoadTransactionProtocol,
    ProgressListener,
    RecordValidator,
    SchemaProvider,
)

__all__ = [
    "BatchLoadProbe",
    "CypherResult",
    "GraphLoadingClientProtocol",
    "IngestionPipelineFactory",
    "IngestionPipelineProtocol",
    "LoadTransactionProtocol",
    "ProgressListener",
    "RecordValidator",
    "SchemaProvider",
]
