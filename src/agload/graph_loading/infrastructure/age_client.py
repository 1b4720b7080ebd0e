"""Apache AGE client for batch loading.

Provides connection handling and explicit transactions using
psycopg2-binary directly with AGE SQL wrappers.
"""

from __future__ import annotations

import secrets
import string
import typing
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, Sequence

import psycopg2
from psycopg2 import sql

from graph_loading.infrastructure.exceptions import InsecureCypherQueryError
from graph_loading.infrastructure.observability import (
    DefaultGraphClientProbe,
    GraphClientProbe,
)
from graph_loading.ports.protocols import CypherResult
from infrastructure.database.connection import ConnectionFactory
from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    GraphQueryError,
    TransactionError,
)
from infrastructure.identifiers import validate_identifier

if TYPE_CHECKING:
    from psycopg2.extensions import connection as PsycopgConnection
    from psycopg2.sql import Composable

    from infrastructure.settings import DatabaseSettings


class AgeGraphClient:
    """Apache AGE implementation of GraphLoadingClientProtocol.

    Example:
        settings = DatabaseSettings()
        client = AgeGraphClient(settings)
        client.connect()

        with client.transaction() as tx:
            tx.execute_cypher("CREATE (n:Person {name: 'Alice'})")
    """

    def __init__(
        self,
        settings: DatabaseSettings,
        probe: GraphClientProbe | None = None,
        connection_factory: ConnectionFactory | None = None,
    ):
        self._settings = settings
        self._connection_factory = connection_factory or ConnectionFactory(settings)
        self._graph_name = settings.graph_name
        self._connection: PsycopgConnection | None = None
        self._probe = probe or DefaultGraphClientProbe()

    @property
    def graph_name(self) -> str:
        """The name of the graph being operated on."""
        return self._graph_name

    def is_connected(self) -> bool:
        """Check if the connection is open."""
        return self._connection is not None and not self._connection.closed

    @property
    def raw_connection(self) -> PsycopgConnection:
        """Get the underlying psycopg2 connection."""
        if self._connection is None:
            raise DatabaseConnectionError("Not connected to database")
        return self._connection

    def connect(self) -> None:
        """Establish connection to the graph database."""
        try:
            self._connection = self._connection_factory.create_connection()
            self.ensure_graph(self._graph_name)
            self._probe.connected_to_graph(self._graph_name)
        except (psycopg2.Error, DatabaseConnectionError) as e:
            self._connection = None
            raise DatabaseConnectionError(f"Failed to connect: {e}") from e

    def ensure_graph(self, graph_name: str) -> None:
        """Ensure a graph exists, creating it if necessary."""
        validate_identifier(graph_name, kind="graph name")
        connection = self.raw_connection
        with connection.cursor() as cursor:
            cursor.execute(
                "SELECT 1 FROM ag_catalog.ag_graph WHERE name = %s",
                (graph_name,),
            )
            if cursor.fetchone() is None:
                cursor.execute(
                    "SELECT ag_catalog.create_graph(%s)",
                    (graph_name,),
                )
                connection.commit()
                self._probe.graph_created(graph_name)

    def disconnect(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection_factory.close_connection(self._connection)
        self._connection = None

    @staticmethod
    def _generate_nonce() -> str:
        return "".join(secrets.choice(string.ascii_letters) for _ in range(64))

    @staticmethod
    def build_secure_cypher_sql(
        graph_name: str,
        query: str,
        nonce_generator: typing.Optional[typing.Callable[[], str]] = None,
    ) -> str:
        """Build the SQL statement for executing a Cypher query via AGE.

        AGE requires Cypher queries to be wrapped in:
        SELECT * FROM cypher('graph_name', <tag> CYPHER_QUERY <tag>) AS (result agtype)

        A random dollar-quote tag (instead of the default $$) is generated for
        each query. If the tag occurs in the query an InsecureCypherQueryError
        is raised. A `nonce_generator` may be passed to produce the tag body.

        The return type is fixed to (result agtype), so the query must return
        a single value per row.
        """
        validate_identifier(graph_name, kind="graph name")

        nonce_generator = (
            nonce_generator if nonce_generator else AgeGraphClient._generate_nonce
        )

        nonce = nonce_generator()

        if nonce in query:
            raise InsecureCypherQueryError(
                message="Unique nonce detected in cypher query.", query=query
            )

        tag = f"${nonce}$"

        return f"""
            SELECT * FROM cypher('{graph_name}', {tag} {query} {tag}) AS (result agtype)
        """

    def begin_transaction(self, graph_name: str | None = None) -> AgeTransaction:
        """Open a transaction on the client's connection.

        The caller is responsible for calling commit() or rollback().
        """
        if not self.is_connected():
            raise DatabaseConnectionError("Not connected to database")
        return AgeTransaction(self.raw_connection, graph_name or self._graph_name)

    @contextmanager
    def transaction(self, graph_name: str | None = None) -> Iterator[AgeTransaction]:
        """Create a transaction context for atomic operations.

        Usage:
            with client.transaction() as tx:
                loader.load_graph_data(data, LoadOptions(transaction=tx))
                # Auto-commits on success, rolls back on exception
        """
        tx = self.begin_transaction(graph_name)
        try:
            yield tx
            tx.commit()
        except Exception:
            tx.rollback()
            raise


class AgeTransaction:
    """Transaction over a psycopg2 connection.

    psycopg2 opens the underlying database transaction implicitly on the
    first statement; this object tracks whether it was finalized.
    """

    def __init__(self, connection: PsycopgConnection, graph_name: str):
        validate_identifier(graph_name, kind="graph name")
        self._connection = connection
        self._graph_name = graph_name
        self._committed = False
        self._rolled_back = False

    @property
    def graph_name(self) -> str:
        return self._graph_name

    @property
    def is_finalized(self) -> bool:
        return self._committed or self._rolled_back

    def _ensure_active(self) -> None:
        if self.is_finalized:
            raise TransactionError("Transaction already finalized")

    def cursor(self):
        """Open a new cursor on the transaction's connection."""
        self._ensure_active()
        return self._connection.cursor()

    def execute_sql(
        self,
        statement: str | Composable,
        params: Sequence[Any] | None = None,
    ) -> list[tuple[Any, ...]]:
        """Execute raw SQL (not Cypher) within the transaction.

        Returns:
            The rows produced by the statement, or an empty list.
        """
        self._ensure_active()
        try:
            with self._connection.cursor() as cursor:
                cursor.execute(statement, params)
                if cursor.description is None:
                    return []
                return list(cursor.fetchall())
        except psycopg2.Error as e:
            raise GraphQueryError(
                f"Transaction statement failed: {e}", query=str(statement)
            ) from e

    def execute_cypher(
        self,
        query: str,
        graph_name: str | None = None,
    ) -> CypherResult:
        """Execute a Cypher query within the transaction."""
        self._ensure_active()
        try:
            with self._connection.cursor() as cursor:
                statement = AgeGraphClient.build_secure_cypher_sql(
                    graph_name=graph_name or self._graph_name, query=query
                )

                cursor.execute(statement)
                rows = cursor.fetchall()

                return CypherResult(
                    rows=tuple(rows),
                    row_count=len(rows),
                )

        except psycopg2.Error as e:
            raise GraphQueryError(f"Transaction query failed: {e}", query=query) from e

    def savepoint(self, name: str) -> None:
        self.execute_sql(sql.SQL("SAVEPOINT {}").format(sql.Identifier(name)))

    def release_savepoint(self, name: str) -> None:
        self.execute_sql(sql.SQL("RELEASE SAVEPOINT {}").format(sql.Identifier(name)))

    def rollback_to_savepoint(self, name: str) -> None:
        self.execute_sql(
            sql.SQL("ROLLBACK TO SAVEPOINT {}").format(sql.Identifier(name))
        )

    def commit(self) -> None:
        """Commit the transaction."""
        if self._rolled_back:
            raise TransactionError("Cannot commit a rolled-back transaction")
        if not self._committed:
            self._connection.commit()
            self._committed = True

    def rollback(self) -> None:
        """Rollback the transaction."""
        if self._committed:
            raise TransactionError("Cannot rollback a committed transaction")
        if not self._rolled_back:
            self._connection.rollback()
            self._rolled_back = True
