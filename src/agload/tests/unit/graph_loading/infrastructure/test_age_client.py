"""Unit tests for AgeGraphClient and AgeTransaction.

These tests use mocks to test the client logic without requiring a database.
"""

from unittest.mock import MagicMock

import psycopg2
import pytest
from psycopg2 import sql

from graph_loading.infrastructure.age_client import AgeGraphClient, AgeTransaction
from graph_loading.infrastructure.exceptions import InsecureCypherQueryError
from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    GraphQueryError,
    TransactionError,
)


@pytest.fixture
def connected_client(mock_db_settings, mock_psycopg2_connection):
    """Provide a client connected through a mocked connection factory."""
    conn, _ = mock_psycopg2_connection
    factory = MagicMock()
    factory.create_connection.return_value = conn
    client = AgeGraphClient(
        mock_db_settings, probe=MagicMock(), connection_factory=factory
    )
    client.connect()
    return client


class TestAgeGraphClientConnection:
    """Tests for connection state management."""

    def test_client_initializes_with_settings(self, mock_db_settings):
        """Client should initialize with provided settings."""
        client = AgeGraphClient(mock_db_settings)

        assert client.graph_name == "test_graph"
        assert client.is_connected() is False

    def test_raw_connection_raises_when_not_connected(self, mock_db_settings):
        client = AgeGraphClient(mock_db_settings)

        with pytest.raises(DatabaseConnectionError):
            client.raw_connection

    def test_connect_checks_existing_graph(self, connected_client, mock_psycopg2_connection):
        """An existing graph is not created again."""
        _, cursor = mock_psycopg2_connection

        assert connected_client.is_connected() is True
        cursor.execute.assert_called_once_with(
            "SELECT 1 FROM ag_catalog.ag_graph WHERE name = %s", ("test_graph",)
        )

    def test_connect_creates_missing_graph(
        self, mock_db_settings, mock_psycopg2_connection
    ):
        """A missing graph is created and committed."""
        conn, cursor = mock_psycopg2_connection
        cursor.fetchone.return_value = None
        factory = MagicMock()
        factory.create_connection.return_value = conn
        probe = MagicMock()

        client = AgeGraphClient(mock_db_settings, probe=probe, connection_factory=factory)
        client.connect()

        cursor.execute.assert_any_call(
            "SELECT ag_catalog.create_graph(%s)", ("test_graph",)
        )
        conn.commit.assert_called_once()
        probe.graph_created.assert_called_once_with("test_graph")

    def test_connect_wraps_driver_errors(self, mock_db_settings):
        factory = MagicMock()
        factory.create_connection.side_effect = psycopg2.OperationalError("down")
        client = AgeGraphClient(mock_db_settings, connection_factory=factory)

        with pytest.raises(DatabaseConnectionError, match="down"):
            client.connect()

        assert client.is_connected() is False

    def test_disconnect_closes_through_factory(self, connected_client):
        conn = connected_client.raw_connection
        factory = connected_client._connection_factory

        connected_client.disconnect()

        factory.close_connection.assert_called_once_with(conn)
        assert connected_client.is_connected() is False

    def test_begin_transaction_requires_connection(self, mock_db_settings):
        client = AgeGraphClient(mock_db_settings)

        with pytest.raises(DatabaseConnectionError):
            client.begin_transaction()

    def test_begin_transaction_defaults_to_client_graph(self, connected_client):
        tx = connected_client.begin_transaction()

        assert isinstance(tx, AgeTransaction)
        assert tx.graph_name == "test_graph"
        assert connected_client.begin_transaction("other").graph_name == "other"


class TestCypherSqlWrapping:
    """Tests for Cypher query SQL wrapping logic."""

    def test_wraps_query_with_nonce_tag(self):
        """Should wrap Cypher query in AGE SQL format."""
        statement = AgeGraphClient.build_secure_cypher_sql(
            "test_graph", "MATCH (n) RETURN n", nonce_generator=lambda: "abc"
        )

        assert (
            "SELECT * FROM cypher('test_graph', $abc$ MATCH (n) RETURN n $abc$) "
            "AS (result agtype)"
        ) in statement

    def test_generated_nonce_is_letters(self):
        nonce = AgeGraphClient._generate_nonce()

        assert len(nonce) == 64
        assert nonce.isalpha()

    def test_rejects_query_containing_nonce(self):
        with pytest.raises(InsecureCypherQueryError):
            AgeGraphClient.build_secure_cypher_sql(
                "test_graph", "RETURN 'abc'", nonce_generator=lambda: "abc"
            )

    def test_rejects_invalid_graph_name(self):
        with pytest.raises(ValueError):
            AgeGraphClient.build_secure_cypher_sql("bad-graph", "RETURN 1")


class TestAgeTransaction:
    """Tests for explicit transactions."""

    def test_execute_cypher_returns_rows(self, mock_psycopg2_connection):
        conn, cursor = mock_psycopg2_connection
        cursor.fetchall.return_value = [("2",)]
        tx = AgeTransaction(conn, "test_graph")

        result = tx.execute_cypher("RETURN 2")

        assert result.rows == (("2",),)
        assert result.row_count == 1
        statement = cursor.execute.call_args.args[0]
        assert "cypher('test_graph'" in statement

    def test_execute_cypher_uses_graph_override(self, mock_psycopg2_connection):
        conn, cursor = mock_psycopg2_connection
        tx = AgeTransaction(conn, "test_graph")

        tx.execute_cypher("RETURN 1", graph_name="other_graph")

        assert "cypher('other_graph'" in cursor.execute.call_args.args[0]

    def test_execute_cypher_wraps_driver_errors(self, mock_psycopg2_connection):
        conn, cursor = mock_psycopg2_connection
        cursor.execute.side_effect = psycopg2.ProgrammingError("syntax")
        tx = AgeTransaction(conn, "test_graph")

        with pytest.raises(GraphQueryError, match="syntax") as exc_info:
            tx.execute_cypher("RETURN nonsense")

        assert exc_info.value.query == "RETURN nonsense"

    def test_execute_sql_without_result_set(self, mock_psycopg2_connection):
        conn, cursor = mock_psycopg2_connection
        cursor.description = None
        tx = AgeTransaction(conn, "test_graph")

        assert tx.execute_sql("SET x = 1") == []
        cursor.fetchall.assert_not_called()

    def test_savepoint_statements(self, mock_psycopg2_connection):
        conn, cursor = mock_psycopg2_connection
        tx = AgeTransaction(conn, "test_graph")

        tx.savepoint("sp")
        tx.rollback_to_savepoint("sp")
        tx.release_savepoint("sp")

        executed = [call.args[0] for call in cursor.execute.call_args_list]
        assert executed == [
            sql.SQL("SAVEPOINT {}").format(sql.Identifier("sp")),
            sql.SQL("ROLLBACK TO SAVEPOINT {}").format(sql.Identifier("sp")),
            sql.SQL("RELEASE SAVEPOINT {}").format(sql.Identifier("sp")),
        ]

    def test_commit_finalizes(self, mock_psycopg2_connection):
        conn, _ = mock_psycopg2_connection
        tx = AgeTransaction(conn, "test_graph")

        tx.commit()
        tx.commit()

        conn.commit.assert_called_once()
        assert tx.is_finalized is True
        with pytest.raises(TransactionError):
            tx.execute_sql("SELECT 1")
        with pytest.raises(TransactionError):
            tx.rollback()

    def test_rollback_finalizes(self, mock_psycopg2_connection):
        conn, _ = mock_psycopg2_connection
        tx = AgeTransaction(conn, "test_graph")

        tx.rollback()

        conn.rollback.assert_called_once()
        with pytest.raises(TransactionError):
            tx.commit()

    def test_transaction_context_commits(self, connected_client):
        conn = connected_client.raw_connection

        with connected_client.transaction():
            pass

        conn.commit.assert_called_once()

    def test_transaction_context_rolls_back_on_error(self, connected_client):
        conn = connected_client.raw_connection

        with pytest.raises(RuntimeError):
            with connected_client.transaction():
                raise RuntimeError("boom")

        conn.rollback.assert_called_once()
