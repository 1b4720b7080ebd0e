"""Staging table management for AGE bulk loading.

Records are staged in transaction-scoped temp tables, one row per record,
before bridge functions aggregate them into agtype arrays.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from psycopg2 import sql
from psycopg2.extras import Json, execute_values

from graph_loading.domain.value_objects import EndpointFailure

from .queries import MutationQueryBuilder

VERTEX_COLUMNS: tuple[str, ...] = ("label", "properties")
EDGE_COLUMNS: tuple[str, ...] = (
    "label",
    "from_id",
    "to_id",
    "from_ref",
    "to_ref",
    "properties",
)

Row = tuple[Any, ...]


class InsertMode(str, Enum):
    """How one batch of rows is written to a staging table."""

    SEQUENTIAL = "sequential"
    BULK = "bulk"


@dataclass
class StagedLabel:
    """Book-keeping for the rows staged for one label.

    Property names are kept in first-seen order so that creation
    statements set them deterministically.
    """

    label: str
    row_count: int = 0
    skipped: int = 0
    property_names: dict[str, None] = field(default_factory=dict)

    def note_properties(self, properties: dict[str, Any]) -> None:
        for name in properties:
            self.property_names.setdefault(name, None)

    @property
    def ordered_property_names(self) -> list[str]:
        return list(self.property_names)


def vertex_row(label: str, properties: dict[str, Any]) -> Row:
    """Build a vertex staging row."""
    return (label, Json(properties))


def edge_row(label: str, from_ref: Any, to_ref: Any, properties: dict[str, Any]) -> Row:
    """Build an edge staging row.

    Endpoint ids are stored twice: as text for the endpoint check and as
    JSON so that the creation statement matches on the original value type.
    """
    return (
        label,
        str(from_ref),
        str(to_ref),
        Json(from_ref),
        Json(to_ref),
        Json(properties),
    )


class StagingTableManager:
    """Manages temporary staging tables for one load invocation."""

    def create_vertex_staging_table(self, cursor: Any, token: str) -> str:
        """Create a temporary staging table for vertices."""
        table_name = f"_agload_vertices_{token}"
        query = sql.SQL(
            """
            CREATE TEMP TABLE {} (
                seq BIGSERIAL PRIMARY KEY,
                label TEXT NOT NULL,
                properties JSONB NOT NULL
            ) ON COMMIT DROP
            """
        ).format(sql.Identifier(table_name))
        cursor.execute(query)
        return table_name

    def create_edge_staging_table(self, cursor: Any, token: str) -> str:
        """Create a temporary staging table for edges."""
        table_name = f"_agload_edges_{token}"
        query = sql.SQL(
            """
            CREATE TEMP TABLE {} (
                seq BIGSERIAL PRIMARY KEY,
                label TEXT NOT NULL,
                from_id TEXT NOT NULL,
                to_id TEXT NOT NULL,
                from_ref JSONB NOT NULL,
                to_ref JSONB NOT NULL,
                properties JSONB NOT NULL
            ) ON COMMIT DROP
            """
        ).format(sql.Identifier(table_name))
        cursor.execute(query)
        return table_name

    def create_label_index(self, cursor: Any, table_name: str) -> None:
        """Index the label column used by every bridge function body."""
        query = sql.SQL("CREATE INDEX {} ON {} (label, seq)").format(
            sql.Identifier(f"{table_name}_label_idx"),
            sql.Identifier(table_name),
        )
        cursor.execute(query)

    def insert_rows(
        self,
        cursor: Any,
        table_name: str,
        columns: Sequence[str],
        rows: Sequence[Row],
        mode: InsertMode,
    ) -> int:
        """Insert one batch of rows, preserving their order.

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0

        target = sql.SQL("INSERT INTO {} ({})").format(
            sql.Identifier(table_name),
            sql.SQL(", ").join(sql.Identifier(column) for column in columns),
        )

        if mode == InsertMode.BULK:
            execute_values(
                cursor,
                sql.SQL("{} VALUES %s").format(target),
                rows,
                page_size=len(rows),
            )
        else:
            query = sql.SQL("{} VALUES ({})").format(
                target,
                sql.SQL(", ").join(sql.Placeholder() for _ in columns),
            )
            for row in rows:
                cursor.execute(query, row)

        return len(rows)

    def find_unresolved_endpoints(
        self, cursor: Any, table_name: str, graph_name: str
    ) -> list[EndpointFailure]:
        """Return staged edges whose endpoints are not stored vertices.

        The check runs against the graph's vertex tables, so vertices created
        earlier in the same transaction count as existing.
        """
        cursor.execute(
            MutationQueryBuilder.edge_endpoint_check_statement(table_name, graph_name)
        )
        return [
            EndpointFailure(
                seq=seq,
                label=label,
                from_id=from_id,
                to_id=to_id,
                from_exists=bool(from_exists),
                to_exists=bool(to_exists),
            )
            for seq, label, from_id, to_id, from_exists, to_exists in cursor.fetchall()
        ]

    def drop_table(self, cursor: Any, table_name: str) -> None:
        cursor.execute(
            sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(table_name))
        )
