"""Unit tests for ConnectionFactory."""

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from infrastructure.database.connection import ConnectionFactory
from infrastructure.database.exceptions import DatabaseConnectionError


class TestConnectionFactory:
    """Tests for ConnectionFactory."""

    def test_create_connection_loads_age(
        self, mock_db_settings, mock_psycopg2_connection
    ):
        """New connections should load AGE and set the search path."""
        conn, cursor = mock_psycopg2_connection
        probe = MagicMock()

        with patch(
            "infrastructure.database.connection.psycopg2.connect", return_value=conn
        ) as connect:
            factory = ConnectionFactory(mock_db_settings, probe=probe)
            result = factory.create_connection()

        assert result is conn
        connect.assert_called_once_with(
            host="testhost",
            port=5432,
            dbname="testdb",
            user="testuser",
            password="testpass",
            connect_timeout=10,
            application_name="age-graph-loader",
        )
        executed = [call.args[0] for call in cursor.execute.call_args_list]
        assert executed[0] == "LOAD 'age';"
        assert "ag_catalog" in executed[1]
        conn.commit.assert_called_once()
        probe.connection_established.assert_called_once_with(
            host="testhost", database="testdb"
        )
        probe.age_session_prepared.assert_called_once_with("age-graph-loader")

    def test_create_connection_wraps_driver_errors(self, mock_db_settings):
        """Driver errors should surface as DatabaseConnectionError."""
        probe = MagicMock()

        with patch(
            "infrastructure.database.connection.psycopg2.connect",
            side_effect=psycopg2.OperationalError("refused"),
        ):
            factory = ConnectionFactory(mock_db_settings, probe=probe)
            with pytest.raises(DatabaseConnectionError, match="refused"):
                factory.create_connection()

        probe.connection_failed.assert_called_once()

    def test_failed_age_setup_closes_connection(
        self, mock_db_settings, mock_psycopg2_connection
    ):
        """A session that cannot load AGE is closed before raising."""
        conn, cursor = mock_psycopg2_connection
        cursor.execute.side_effect = psycopg2.OperationalError(
            'could not access file "age"'
        )
        probe = MagicMock()

        with patch(
            "infrastructure.database.connection.psycopg2.connect", return_value=conn
        ):
            factory = ConnectionFactory(mock_db_settings, probe=probe)
            with pytest.raises(DatabaseConnectionError, match="Failed to load AGE"):
                factory.create_connection()

        conn.close.assert_called_once()
        probe.connection_failed.assert_called_once()
        probe.connection_established.assert_not_called()

    def test_close_connection_closes_open_connection(
        self, mock_db_settings, mock_psycopg2_connection
    ):
        """Open connections are closed and the probe notified."""
        conn, _ = mock_psycopg2_connection
        probe = MagicMock()
        factory = ConnectionFactory(mock_db_settings, probe=probe)

        factory.close_connection(conn)

        conn.close.assert_called_once()
        probe.connection_closed.assert_called_once()

    def test_close_connection_skips_closed_connection(
        self, mock_db_settings, mock_psycopg2_connection
    ):
        """Already closed connections are not closed again."""
        conn, _ = mock_psycopg2_connection
        conn.closed = True
        factory = ConnectionFactory(mock_db_settings, probe=MagicMock())

        factory.close_connection(conn)

        conn.close.assert_not_called()

    def test_close_failure_is_reported_not_raised(
        self, mock_db_settings, mock_psycopg2_connection
    ):
        conn, _ = mock_psycopg2_connection
        error = psycopg2.InterfaceError("connection already closed")
        conn.close.side_effect = error
        probe = MagicMock()
        factory = ConnectionFactory(mock_db_settings, probe=probe)

        factory.close_connection(conn)

        probe.connection_close_failed.assert_called_once_with(error)
        probe.connection_closed.assert_not_called()
