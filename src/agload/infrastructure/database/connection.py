"""psycopg2 sessions prepared for Apache AGE.

The loader holds one connection per client and runs every load on it, so
there is no pool here. Each session loads the ``age`` library and puts
``ag_catalog`` first on the search path before it is handed out.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import psycopg2

from infrastructure.database.exceptions import DatabaseConnectionError
from infrastructure.observability.probes import (
    ConnectionProbe,
    DefaultConnectionProbe,
)

if TYPE_CHECKING:
    from psycopg2.extensions import connection as PsycopgConnection

    from infrastructure.settings import DatabaseSettings

_AGE_SESSION_STATEMENTS = (
    "LOAD 'age';",
    'SET search_path = ag_catalog, "$user", public;',
)


class ConnectionFactory:
    """Opens and closes AGE-ready psycopg2 sessions."""

    def __init__(
        self,
        settings: DatabaseSettings,
        probe: ConnectionProbe | None = None,
    ):
        self._settings = settings
        self._probe = probe or DefaultConnectionProbe()

    def create_connection(self) -> PsycopgConnection:
        """Open a session with AGE loaded.

        A session whose AGE setup fails is closed before the error is
        raised, so no half-prepared connection escapes.

        Raises:
            DatabaseConnectionError: If the server is unreachable or AGE
                cannot be loaded
        """
        settings = self._settings
        try:
            conn = psycopg2.connect(
                host=settings.host,
                port=settings.port,
                dbname=settings.database,
                user=settings.username,
                password=settings.password.get_secret_value(),
                connect_timeout=settings.connect_timeout,
                application_name=settings.application_name,
            )
        except psycopg2.Error as e:
            self._probe.connection_failed(
                host=settings.host, database=settings.database, error=e
            )
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

        try:
            self._prepare_age_session(conn)
        except psycopg2.Error as e:
            self._probe.connection_failed(
                host=settings.host, database=settings.database, error=e
            )
            conn.close()
            raise DatabaseConnectionError(
                f"Failed to load AGE into the session: {e}"
            ) from e

        self._probe.connection_established(
            host=settings.host, database=settings.database
        )
        return conn

    def _prepare_age_session(self, conn: PsycopgConnection) -> None:
        with conn.cursor() as cursor:
            for statement in _AGE_SESSION_STATEMENTS:
                cursor.execute(statement)
        conn.commit()
        self._probe.age_session_prepared(self._settings.application_name)

    def close_connection(self, conn: PsycopgConnection) -> None:
        """Close a session; a failing close is reported, never raised."""
        if conn.closed:
            return
        try:
            conn.close()
        except psycopg2.Error as e:
            self._probe.connection_close_failed(e)
            return
        self._probe.connection_closed()
