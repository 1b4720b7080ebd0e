"""Query builder for batch graph mutations.

Cypher statements dereference a bridge function inside a WITH clause and
UNWIND its array into one creation per element. AGE has no ``SET n += map``,
so every staged property name gets its own SET item.
"""

from __future__ import annotations

from typing import Sequence

from psycopg2 import sql

from .utils import quote_cypher_identifier, validate_label_name


class MutationQueryBuilder:
    """Builder for the statements issued by the ingestion pipeline.

    All methods are static to allow stateless usage.
    """

    @staticmethod
    def _set_clause(variable: str, property_names: Sequence[str]) -> str:
        if not property_names:
            return ""
        assignments = ", ".join(
            f"{variable}.{quote_cypher_identifier(name)} = "
            f"item.properties.{quote_cypher_identifier(name)}"
            for name in property_names
        )
        return f"SET {assignments}"

    @staticmethod
    def vertex_creation_statement(
        bridge_ref: str,
        label: str,
        property_names: Sequence[str],
    ) -> str:
        """Build the Cypher statement that creates one vertex per bridged item.

        Args:
            bridge_ref: Schema-qualified bridge call, e.g. ``public.fn()``
            label: Vertex label
            property_names: Property names to copy from each item

        Returns:
            Cypher query returning the number of created vertices
        """
        validate_label_name(label)
        set_clause = MutationQueryBuilder._set_clause("v", property_names)
        return (
            f"WITH {bridge_ref} AS items "
            f"UNWIND items AS item "
            f"CREATE (v:{quote_cypher_identifier(label)}) "
            f"{set_clause} "
            f"RETURN count(v)"
        )

    @staticmethod
    def edge_creation_statement(
        bridge_ref: str,
        label: str,
        property_names: Sequence[str],
    ) -> str:
        """Build the Cypher statement that creates one edge per bridged item.

        Endpoints are matched on their ``id`` property. The statement must
        only run once the endpoint check reported no failures.

        Args:
            bridge_ref: Schema-qualified bridge call, e.g. ``public.fn()``
            label: Edge label
            property_names: Property names to copy from each item

        Returns:
            Cypher query returning the number of created edges
        """
        validate_label_name(label)
        set_clause = MutationQueryBuilder._set_clause("e", property_names)
        return (
            f"WITH {bridge_ref} AS items "
            f"UNWIND items AS item "
            f"MATCH (a {{id: item.from}}), (b {{id: item.to}}) "
            f"CREATE (a)-[e:{quote_cypher_identifier(label)}]->(b) "
            f"{set_clause} "
            f"RETURN count(e)"
        )

    @staticmethod
    def edge_endpoint_check_statement(
        staging_table: str,
        graph_name: str,
    ) -> sql.Composed:
        """Build the SQL that finds staged edges with unresolved endpoints.

        Every staged row whose endpoint does not match the ``id`` property of
        a stored vertex is returned together with the existence flag of each
        endpoint. Ids are compared by value and type, the way the creation
        statement's MATCH compares them, so ``1`` does not resolve ``"1"``.
        """
        return sql.SQL(
            """
            WITH stored AS (
                SELECT
                    ag_catalog.agtype_object_field_text_agtype(
                        properties, '"id"'::ag_catalog.agtype
                    ) AS logical_id,
                    (properties::text)::jsonb -> 'id' AS typed_id
                FROM {graph}._ag_label_vertex
            ),
            checked AS (
                SELECT
                    s.seq,
                    s.label,
                    s.from_id,
                    s.to_id,
                    EXISTS (
                        SELECT 1 FROM stored
                        WHERE stored.logical_id = s.from_id
                        AND stored.typed_id = s.from_ref
                    ) AS from_exists,
                    EXISTS (
                        SELECT 1 FROM stored
                        WHERE stored.logical_id = s.to_id
                        AND stored.typed_id = s.to_ref
                    ) AS to_exists
                FROM pg_temp.{staging} AS s
            )
            SELECT seq, label, from_id, to_id, from_exists, to_exists
            FROM checked
            WHERE NOT (from_exists AND to_exists)
            ORDER BY seq
            """
        ).format(
            graph=sql.Identifier(graph_name),
            staging=sql.Identifier(staging_table),
        )
