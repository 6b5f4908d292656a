"""Shared dataclasses describing keyspaces, tables and song records."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence

_IDENTIFIER = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,47}$")


def validate_identifier(name: str, *, kind: str = "identifier") -> str:
    """Reject names that cannot be used unquoted in CQL."""

    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid {kind} name {name!r}.")
    return name


class ReplicationStrategy(str, Enum):
    """Replica placement strategies supported for new keyspaces."""

    SIMPLE = "SimpleStrategy"
    NETWORK_TOPOLOGY = "NetworkTopologyStrategy"


@dataclass(frozen=True, slots=True)
class KeyspaceSpec:
    """Keyspace name plus its replication settings."""

    name: str
    strategy: ReplicationStrategy = ReplicationStrategy.SIMPLE
    replication_factor: int = 1

    def __post_init__(self) -> None:
        validate_identifier(self.name, kind="keyspace")
        if self.replication_factor < 1:
            raise ValueError("Replication factor must be at least 1.")

    def replication_map(self) -> str:
        return f"{{'class': '{self.strategy.value}', 'replication_factor': {self.replication_factor}}}"

    def create_statement(self) -> str:
        return (
            f"CREATE KEYSPACE IF NOT EXISTS {self.name} "
            f"WITH replication = {self.replication_map()}"
        )


@dataclass(frozen=True, slots=True)
class Column:
    """Column name and CQL type."""

    name: str
    cql_type: str


@dataclass(frozen=True, slots=True)
class TableSpec:
    """Table metadata used to render statements for a record type.

    ``name`` is qualified as ``keyspace.table``. The partition key must be
    non-empty and both key lists must only name declared columns.
    """

    name: str
    columns: tuple[Column, ...]
    partition_key: tuple[str, ...]
    clustering_key: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        keyspace, _, table = self.name.partition(".")
        validate_identifier(keyspace, kind="keyspace")
        validate_identifier(table, kind="table")
        if not self.columns:
            raise ValueError(f"Table '{self.name}' declares no columns.")
        names = self.column_names
        if len(set(names)) != len(names):
            raise ValueError(f"Table '{self.name}' declares duplicate columns.")
        if not self.partition_key:
            raise ValueError(f"Table '{self.name}' needs a partition key.")
        unknown = [col for col in (*self.partition_key, *self.clustering_key) if col not in names]
        if unknown:
            raise ValueError(f"Key columns {unknown} are not declared on '{self.name}'.")
        if set(self.partition_key) & set(self.clustering_key):
            raise ValueError("Partition and clustering keys must not overlap.")

    @property
    def keyspace(self) -> str:
        return self.name.split(".", 1)[0]

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    @property
    def primary_key(self) -> tuple[str, ...]:
        return self.partition_key + self.clustering_key

    def create_statement(self) -> str:
        columns = ", ".join(f"{column.name} {column.cql_type}" for column in self.columns)
        key = f"({', '.join(self.partition_key)})"
        if self.clustering_key:
            key = f"{key}, {', '.join(self.clustering_key)}"
        return f"CREATE TABLE IF NOT EXISTS {self.name} ({columns}, PRIMARY KEY ({key}))"

    def insert_statement(self) -> str:
        names = self.column_names
        markers = ", ".join("?" for _ in names)
        return f"INSERT INTO {self.name} ({', '.join(names)}) VALUES ({markers})"

    def select_statement(self) -> str:
        where = " AND ".join(f"{column} = ?" for column in self.partition_key)
        return f"SELECT {', '.join(self.column_names)} FROM {self.name} WHERE {where}"


@dataclass(frozen=True, slots=True)
class Song:
    """A song row; clustering fields stay ``None`` on lookup records."""

    id: uuid.UUID
    title: str | None = None
    album: str | None = None
    artist: str | None = None

    @property
    def is_complete(self) -> bool:
        return None not in (self.title, self.album, self.artist)


SONGS_COLUMNS: tuple[Column, ...] = (
    Column("id", "uuid"),
    Column("title", "text"),
    Column("album", "text"),
    Column("artist", "text"),
)


def songs_table(qualified_name: str) -> TableSpec:
    """Metadata for the songs table: partitioned by id, clustered by the rest."""

    return TableSpec(
        name=qualified_name,
        columns=SONGS_COLUMNS,
        partition_key=("id",),
        clustering_key=("title", "album", "artist"),
    )


def song_to_params(song: Song) -> Mapping[str, Any]:
    return {
        "id": song.id,
        "title": song.title,
        "album": song.album,
        "artist": song.artist,
    }


def song_from_row(row: Sequence[Any]) -> Song:
    """Build a song from a row selected as ``(id, title, album, artist)``."""

    song_id, title, album, artist = row
    if not isinstance(song_id, uuid.UUID):
        song_id = uuid.UUID(str(song_id))
    return Song(id=song_id, title=title, album=album, artist=artist)


__all__ = [
    "Column",
    "KeyspaceSpec",
    "ReplicationStrategy",
    "SONGS_COLUMNS",
    "Song",
    "TableSpec",
    "song_from_row",
    "song_to_params",
    "songs_table",
    "validate_identifier",
]
