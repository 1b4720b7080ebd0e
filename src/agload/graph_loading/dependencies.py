"""Dependency wiring for the graph loading bounded context.

Composes infrastructure resources (connection factory, AGE client) with
the loader and its AGE ingestion pipeline.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from graph_loading.application.loader import GraphLoader
from graph_loading.infrastructure.age_bulk_loading import AgeIngestionPipelineFactory
from graph_loading.infrastructure.age_client import AgeGraphClient
from graph_loading.infrastructure.observability import DefaultBatchLoadProbe
from graph_loading.ports.observability import BatchLoadProbe
from graph_loading.ports.protocols import (
    GraphLoadingClientProtocol,
    RecordValidator,
    SchemaProvider,
)
from infrastructure.database.connection import ConnectionFactory
from infrastructure.settings import (
    DatabaseSettings,
    LoaderSettings,
    get_database_settings,
)


def create_graph_client(settings: DatabaseSettings | None = None) -> AgeGraphClient:
    """Create an unconnected AGE graph client.

    Args:
        settings: Database settings; read from the environment when omitted

    Returns:
        AgeGraphClient instance
    """
    settings = settings or get_database_settings()
    factory = ConnectionFactory(settings)
    return AgeGraphClient(settings, connection_factory=factory)


@contextmanager
def connected_graph_client(
    settings: DatabaseSettings | None = None,
) -> Iterator[AgeGraphClient]:
    """Yield a connected client and disconnect it afterwards."""
    client = create_graph_client(settings)
    client.connect()
    try:
        yield client
    finally:
        client.disconnect()


def create_graph_loader(
    client: GraphLoadingClientProtocol,
    schema: SchemaProvider,
    settings: LoaderSettings | None = None,
    validator: RecordValidator | None = None,
    probe: BatchLoadProbe | None = None,
) -> GraphLoader:
    """Create a GraphLoader backed by the AGE ingestion pipeline.

    Args:
        client: Connected graph client
        schema: Schema used for property filtering and validation
        settings: Loader settings; read from the environment when omitted
        validator: Record validator; defaults to a SchemaValidator
        probe: Domain probe; defaults to structlog output

    Returns:
        GraphLoader instance
    """
    return GraphLoader(
        client=client,
        schema=schema,
        pipeline_factory=AgeIngestionPipelineFactory(),
        probe=probe or DefaultBatchLoadProbe(),
        settings=settings,
        validator=validator,
    )
