"""Exceptions for graph loading infrastructure."""

from infrastructure.database.exceptions import (
    GraphQueryError,
)


class InsecureCypherQueryError(GraphQueryError):
    """Raised when a Cypher query contains its own dollar-quote tag."""

    def __init__(self, message: str, query: str | None = None):
        super().__init__(message, query=query)
