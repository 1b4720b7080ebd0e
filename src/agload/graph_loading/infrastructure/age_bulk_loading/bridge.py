"""Bridge functions that hand composite payloads to Cypher.

AGE's cypher() accepts only literal scalars inline, so an array of records
cannot be passed as a parameter. A bridge is a zero-argument SQL function
returning the whole payload as one agtype array; a Cypher statement calls
it inside a WITH clause as though it were a literal.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Sequence

import psycopg2
from psycopg2 import sql

from graph_loading.domain.exceptions import StagingError
from graph_loading.domain.schema import to_graph_value
from graph_loading.domain.value_objects import EntityKind
from infrastructure.identifiers import validate_identifier

from .utils import validate_label_name

_VERTEX_ITEM = sql.SQL("jsonb_build_object('properties', s.properties)")
_EDGE_ITEM = sql.SQL(
    "jsonb_build_object('from', s.from_ref, 'to', s.to_ref, 'properties', s.properties)"
)


@dataclass(frozen=True)
class BridgeHandle:
    """A created bridge function."""

    namespace: str
    name: str

    @property
    def reference(self) -> str:
        """Schema-qualified call text embedded in Cypher statements."""
        return f"{self.namespace}.{self.name}()"

    @property
    def body_tag(self) -> str:
        """Dollar-quote tag used for the function body."""
        return f"$agload_{self.name}$"


def bridge_function_name(token: str, kind: EntityKind, index: int) -> str:
    """Derive a bridge function name from the invocation token."""
    return f"_agload_{kind.value}_{token}_{index}"


def _create_function(
    cursor: Any,
    handle: BridgeHandle,
    body: sql.Composable,
    volatility: str,
) -> None:
    tag = sql.SQL(handle.body_tag)
    statement = sql.SQL(
        "CREATE OR REPLACE FUNCTION {namespace}.{name}() "
        "RETURNS ag_catalog.agtype AS {tag} {body} {tag} "
        "LANGUAGE SQL {volatility}"
    ).format(
        namespace=sql.Identifier(handle.namespace),
        name=sql.Identifier(handle.name),
        tag=tag,
        body=body,
        volatility=sql.SQL(volatility),
    )
    try:
        cursor.execute(statement)
    except psycopg2.Error as e:
        raise StagingError(
            f"Failed to create bridge function {handle.reference}: {e}", cause=e
        ) from e


def create_bridge(
    cursor: Any,
    namespace: str,
    name: str,
    staging_table: str,
    kind: EntityKind,
    label: str,
) -> BridgeHandle:
    """Create a bridge aggregating the staged rows of one label.

    The function body reads the staging table at call time, in staging
    order, and yields an empty array when no rows match. Creating the same
    name twice replaces the function.

    Args:
        cursor: Database cursor
        namespace: Schema that holds the function
        name: Function name
        staging_table: Staging table to aggregate
        kind: Entity kind of the staged rows
        label: Discriminator value selecting the rows

    Returns:
        Handle of the created function

    Raises:
        StagingError: If the function cannot be created
    """
    validate_identifier(namespace, kind="staging namespace")
    validate_identifier(name, kind="bridge function name")
    validate_label_name(label)

    handle = BridgeHandle(namespace=namespace, name=name)
    item = _EDGE_ITEM if kind == EntityKind.EDGE else _VERTEX_ITEM
    body = sql.SQL(
        "SELECT COALESCE(jsonb_agg({item} ORDER BY s.seq), '[]'::jsonb)"
        "::text::ag_catalog.agtype "
        "FROM pg_temp.{table} AS s WHERE s.label = {label}"
    ).format(
        item=item,
        table=sql.Identifier(staging_table),
        label=sql.Literal(label),
    )
    _create_function(cursor, handle, body, "STABLE")
    return handle


def create_literal_bridge(
    cursor: Any,
    namespace: str,
    name: str,
    values: Sequence[Any],
) -> BridgeHandle:
    """Create a bridge returning a literal array.

    Used when a payload is small enough to embed directly instead of
    staging it first.

    Raises:
        StagingError: If the payload contains the body's quote tag or the
            function cannot be created
    """
    validate_identifier(namespace, kind="staging namespace")
    validate_identifier(name, kind="bridge function name")

    handle = BridgeHandle(namespace=namespace, name=name)
    payload = json.dumps([to_graph_value(value) for value in values])
    if handle.body_tag in payload:
        raise StagingError(
            f"Payload for bridge '{name}' contains its quote tag {handle.body_tag}"
        )

    body = sql.SQL("SELECT {payload}::text::ag_catalog.agtype").format(
        payload=sql.Literal(payload),
    )
    _create_function(cursor, handle, body, "IMMUTABLE")
    return handle


def drop_bridge(cursor: Any, handle: BridgeHandle) -> None:
    cursor.execute(
        sql.SQL("DROP FUNCTION IF EXISTS {}.{}()").format(
            sql.Identifier(handle.namespace),
            sql.Identifier(handle.name),
        )
    )
