"""Error kinds surfaced to the application entry point."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import TableSpec


class DatabaseError(RuntimeError):
    """Base class for failures talking to the cluster."""

    kind = "database"


class ClusterConnectionError(DatabaseError):
    """Raised when the cluster is unreachable or a session cannot be opened."""

    kind = "connection"


class SchemaError(DatabaseError):
    """Raised when a keyspace or table statement is rejected."""

    kind = "schema"

    def __init__(self, message: str, *, table: "TableSpec | None" = None) -> None:
        super().__init__(message)
        self.table = table


class QueryError(DatabaseError):
    """Raised when an insert or select fails after driver retries."""

    kind = "query"


__all__ = [
    "ClusterConnectionError",
    "DatabaseError",
    "QueryError",
    "SchemaError",
]
