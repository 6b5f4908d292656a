"""Writing and reading song rows through prepared statements."""

from __future__ import annotations

import logging
from typing import Any

from .errors import QueryError
from .models import Song, TableSpec, song_from_row, song_to_params
from .schema import StatementRunner

LOG = logging.getLogger(__name__)


class _PreparedStatementCache:
    """Prepares each CQL string at most once per session."""

    def __init__(self, session: StatementRunner) -> None:
        self._session = session
        self._prepared: dict[str, Any] = {}

    def get(self, cql: str) -> Any:
        prepared = self._prepared.get(cql)
        if prepared is None:
            LOG.debug("Preparing CQL: %s", cql)
            prepared = self._session.prepare(cql)
            self._prepared[cql] = prepared
        return prepared


class SongWriter:
    """Upserts complete songs into a table."""

    def __init__(self, session: StatementRunner, table: TableSpec) -> None:
        self._session = session
        self._table = table
        self._statements = _PreparedStatementCache(session)

    def insert(self, song: Song) -> None:
        if not song.is_complete:
            raise ValueError("Cannot insert a song without title, album and artist.")
        params = song_to_params(song)
        values = [params[column] for column in self._table.column_names]
        try:
            statement = self._statements.get(self._table.insert_statement())
            self._session.execute(statement, values)
        except Exception as exc:
            raise QueryError(f"Failed to insert song {song.id} into '{self._table.name}': {exc}") from exc
        LOG.info("Inserted song %s into '%s'", song.id, self._table.name)


class SongReader:
    """Looks songs up by partition key."""

    def __init__(self, session: StatementRunner, table: TableSpec) -> None:
        self._session = session
        self._table = table
        self._statements = _PreparedStatementCache(session)

    def find(self, song: Song) -> list[Song]:
        """Return every row sharing the lookup song's partition key.

        Rows come back in clustering order; an unknown key yields ``[]``.
        """

        params = song_to_params(song)
        values = [params[column] for column in self._table.partition_key]
        try:
            statement = self._statements.get(self._table.select_statement())
            rows = self._session.execute(statement, values)
            songs = [song_from_row(row) for row in rows]
        except Exception as exc:
            raise QueryError(f"Failed to read song {song.id} from '{self._table.name}': {exc}") from exc
        LOG.info("Read %d song(s) for id %s", len(songs), song.id)
        return songs


__all__ = ["SongReader", "SongWriter"]
