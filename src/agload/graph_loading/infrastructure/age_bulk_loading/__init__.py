"""AGE bulk loading package.

Loads graph data into Apache AGE by staging records in temp tables and
exposing them to Cypher through zero-argument bridge functions.

Public API:
    - BatchIngestionPipeline: Per-kind ingestion state machine
    - AgeIngestionPipelineFactory: Creates pipelines for the load orchestrator
    - StagingTableManager: Staging table DDL, inserts and endpoint checks
    - MutationQueryBuilder: Cypher creation and SQL endpoint check statements
    - create_bridge / drop_bridge: Bridge functions over staged rows, used
      by the pipeline
    - create_literal_bridge: Public helper for callers that already hold a
      small payload and want to UNWIND it in their own Cypher without
      staging; the pipeline always stages so edges can be endpoint-checked
    - validate_label_name: Label name validation utility
"""

from .bridge import BridgeHandle, create_bridge, create_literal_bridge, drop_bridge
from .pipeline import AgeIngestionPipelineFactory, BatchIngestionPipeline
from .queries import MutationQueryBuilder
from .schedulers import (
    BatchScheduler,
    ParallelBatchScheduler,
    StreamingScheduler,
    select_scheduler,
)
from .staging import InsertMode, StagingTableManager
from .utils import validate_label_name

__all__ = [
    "AgeIngestionPipelineFactory",
    "BatchIngestionPipeline",
    "BatchScheduler",
    "BridgeHandle",
    "InsertMode",
    "MutationQueryBuilder",
    "ParallelBatchScheduler",
    "StagingTableManager",
    "StreamingScheduler",
    "create_bridge",
    "create_literal_bridge",
    "drop_bridge",
    "select_scheduler",
    "validate_label_name",
]
