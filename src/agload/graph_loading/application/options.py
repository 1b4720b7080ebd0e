"""Per-call load options and their resolution into a LoadPlan."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from graph_loading.domain.value_objects import LoadPlan, ProgressSink
from infrastructure.identifiers import validate_identifier
from infrastructure.settings import LoaderSettings


class LoadOptions(BaseModel):
    """Options for a single loader call.

    Every field left as None falls back to the loader settings.

    Attributes:
        transaction: Caller-owned transaction; the loader never commits or
            rolls it back
        graph_name: Target graph
        batch_size: Records per staging batch
        on_progress: Callback receiving ProgressEvent instances
        validate_data: Validate records against the schema before loading
        staging_namespace: Schema in which bridge functions are created
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    transaction: Any = None
    graph_name: str | None = None
    batch_size: int | None = Field(default=None, ge=1)
    on_progress: ProgressSink | None = None
    validate_data: bool | None = None
    staging_namespace: str | None = None

    @field_validator("graph_name")
    @classmethod
    def validate_graph_name(cls, value: str | None) -> str | None:
        if value is not None:
            validate_identifier(value, kind="graph name")
        return value

    @field_validator("staging_namespace")
    @classmethod
    def validate_staging_namespace(cls, value: str | None) -> str | None:
        if value is not None:
            validate_identifier(value, kind="staging namespace")
        return value


def resolve_plan(
    settings: LoaderSettings,
    options: LoadOptions,
    client_graph_name: str,
) -> LoadPlan:
    """Merge settings and options into the plan of one invocation.

    The graph name is taken from the options, then from a caller-supplied
    transaction, then from the settings, and finally from the client.
    """
    graph_name = (
        options.graph_name
        or getattr(options.transaction, "graph_name", None)
        or settings.default_graph_name
        or client_graph_name
    )
    return LoadPlan(
        graph_name=graph_name,
        batch_size=options.batch_size or settings.batch_size,
        validate_data=(
            settings.validate_before_load
            if options.validate_data is None
            else options.validate_data
        ),
        staging_namespace=options.staging_namespace or settings.staging_namespace,
        parallel_inserts=settings.parallel_inserts,
        max_parallel_batches=settings.max_parallel_batches,
        use_bulk_insert=settings.use_bulk_insert,
        use_streaming=settings.use_streaming_for_large_datasets,
        large_dataset_threshold=settings.large_dataset_threshold,
    )
