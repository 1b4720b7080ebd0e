"""Database-specific exceptions shared by the loader."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when database connection fails."""

    pass


class GraphQueryError(DatabaseError):
    """Raised when a SQL or Cypher statement fails."""

    def __init__(self, message: str, query: str | None = None):
        super().__init__(message)
        self.query = query


class TransactionError(DatabaseError):
    """Raised when transaction operations fail."""

    pass
