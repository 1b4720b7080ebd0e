"""Connection probes for the loader's database sessions.

A loader session is one psycopg2 connection with AGE loaded and
``ag_catalog`` on the search path. The probe reports that lifecycle
without the connection code knowing how events are logged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class ConnectionProbe(Protocol):
    """Probe for the lifecycle of loader database sessions."""

    def connection_established(self, host: str, database: str) -> None:
        """Record that a session is open and ready for Cypher."""
        ...

    def connection_failed(self, host: str, database: str, error: Exception) -> None:
        """Record that opening or preparing a session failed."""
        ...

    def age_session_prepared(self, application_name: str) -> None:
        """Record that AGE was loaded into a new session."""
        ...

    def connection_closed(self) -> None:
        ...

    def connection_close_failed(self, error: Exception) -> None:
        """Record that closing a session raised; the session is abandoned."""
        ...

    def with_context(self, context: ObservationContext) -> ConnectionProbe:
        ...


class DefaultConnectionProbe:
    """ConnectionProbe that writes structlog events."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _context_fields(self) -> dict[str, Any]:
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultConnectionProbe:
        return DefaultConnectionProbe(logger=self._logger, context=context)

    def connection_established(self, host: str, database: str) -> None:
        self._logger.info(
            "database_connection_established",
            host=host,
            database=database,
            **self._context_fields(),
        )

    def connection_failed(self, host: str, database: str, error: Exception) -> None:
        self._logger.error(
            "database_connection_failed",
            host=host,
            database=database,
            error=str(error),
            error_type=type(error).__name__,
            **self._context_fields(),
        )

    def age_session_prepared(self, application_name: str) -> None:
        self._logger.debug(
            "age_session_prepared",
            application_name=application_name,
            **self._context_fields(),
        )

    def connection_closed(self) -> None:
        self._logger.info(
            "database_connection_closed",
            **self._context_fields(),
        )

    def connection_close_failed(self, error: Exception) -> None:
        self._logger.warning(
            "database_connection_close_failed",
            error=str(error),
            **self._context_fields(),
        )
