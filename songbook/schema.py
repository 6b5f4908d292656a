"""Idempotent keyspace and table bootstrap."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from .errors import SchemaError
from .models import KeyspaceSpec, ReplicationStrategy, TableSpec, songs_table

LOG = logging.getLogger(__name__)


class StatementRunner(Protocol):
    """Subset of the session API needed to run and prepare statements."""

    def execute(self, statement: Any, params: Any = None) -> Any: ...

    def prepare(self, cql: str) -> Any: ...


class SchemaBootstrapper:
    """Creates the keyspace and songs table when they are missing."""

    def __init__(self, session: StatementRunner) -> None:
        self._session = session

    def ensure_keyspace(
        self,
        name: str,
        *,
        strategy: ReplicationStrategy = ReplicationStrategy.SIMPLE,
        replication_factor: int = 1,
    ) -> KeyspaceSpec:
        keyspace = KeyspaceSpec(name=name, strategy=strategy, replication_factor=replication_factor)
        statement = keyspace.create_statement()
        LOG.debug("CQL: %s", statement)
        try:
            self._session.execute(statement)
        except Exception as exc:
            raise SchemaError(f"Failed to create keyspace '{name}': {exc}") from exc
        LOG.info("Keyspace '%s' is ready", name)
        return keyspace

    def ensure_table(self, qualified_name: str) -> TableSpec:
        """Create the songs table and return its metadata.

        The metadata is built before the statement runs. When the statement
        fails the raised ``SchemaError`` still carries it as ``table``.
        """

        table = songs_table(qualified_name)
        statement = table.create_statement()
        LOG.debug("CQL: %s", statement)
        try:
            self._session.execute(statement)
        except Exception as exc:
            raise SchemaError(f"Failed to create table '{qualified_name}': {exc}", table=table) from exc
        LOG.info("Table '%s' is ready", qualified_name)
        return table


__all__ = ["SchemaBootstrapper", "StatementRunner"]
