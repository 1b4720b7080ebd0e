"""Unit test fixtures with mocked dependencies."""

from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest
from psycopg2 import sql

from graph_loading.domain import GraphSchema, LabelSchema, LoadPlan, PropertyDefinition
from graph_loading.ports.protocols import CypherResult


@pytest.fixture
def mock_db_settings():
    """Provide test database settings."""
    from infrastructure.settings import DatabaseSettings

    return DatabaseSettings(
        host="testhost",
        port=5432,
        database="testdb",
        username="testuser",
        password="testpass",
        graph_name="test_graph",
    )


@pytest.fixture
def mock_loader_settings():
    """Provide test loader settings."""
    from infrastructure.settings import LoaderSettings

    return LoaderSettings(batch_size=2)


@pytest.fixture
def mock_psycopg2_connection():
    """Provide a mocked psycopg2 connection."""
    conn = MagicMock()
    conn.closed = False

    cursor = MagicMock()
    cursor.fetchall.return_value = []
    cursor.fetchone.return_value = (1,)

    # Set up context manager
    cursor.__enter__ = MagicMock(return_value=cursor)
    cursor.__exit__ = MagicMock(return_value=False)
    conn.cursor.return_value = cursor

    return conn, cursor


@pytest.fixture
def mock_cursor():
    """Provide a mocked psycopg2 cursor with no results."""
    cursor = MagicMock()
    cursor.fetchall.return_value = []
    cursor.description = None
    return cursor


@pytest.fixture
def mock_transaction(mock_cursor):
    """Provide a mocked load transaction.

    Every ``cursor()`` call yields the same mock cursor, and Cypher
    creation statements report two created entities.
    """
    tx = MagicMock()
    tx.graph_name = "test_graph"

    @contextmanager
    def cursor():
        yield mock_cursor

    tx.cursor.side_effect = cursor
    tx.execute_cypher.return_value = CypherResult(rows=(("2",),), row_count=1)
    return tx


@pytest.fixture
def person_schema():
    """Schema with a Person vertex label and a KNOWS edge label."""
    return GraphSchema(
        vertices={
            "Person": LabelSchema(
                properties={
                    "id": PropertyDefinition(type="string"),
                    "name": PropertyDefinition(type="string"),
                    "age": PropertyDefinition(type="integer"),
                },
                required=["id", "name"],
            ),
            "Company": LabelSchema(
                properties={
                    "id": PropertyDefinition(type="string"),
                    "name": PropertyDefinition(type="string"),
                },
                required=["id"],
            ),
        },
        edges={
            "WORKS_AT": LabelSchema(
                properties={"since": PropertyDefinition(type="integer")},
            ),
            "KNOWS": LabelSchema(),
        },
    )


@pytest.fixture
def load_plan():
    """Provide a plan with small batches."""
    return LoadPlan(graph_name="test_graph", batch_size=2)


def _render_sql(composable):
    """Render a psycopg2 Composable without a database connection."""
    if isinstance(composable, sql.Composed):
        return "".join(_render_sql(part) for part in composable.seq)
    if isinstance(composable, sql.SQL):
        return composable.string
    if isinstance(composable, sql.Identifier):
        return ".".join(f'"{name}"' for name in composable.strings)
    if isinstance(composable, sql.Literal):
        return f"'{composable.wrapped}'"
    if isinstance(composable, sql.Placeholder):
        return "%s"
    return str(composable)


@pytest.fixture
def render_sql():
    """Provide a connection-free renderer for composed SQL statements."""
    return _render_sql
