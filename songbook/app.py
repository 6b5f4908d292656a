"""Command-line entry point: bootstrap the schema, write a song, read it back."""

from __future__ import annotations

import argparse
import logging
import uuid
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from .config import AppConfig, load_config
from .errors import DatabaseError
from .models import Song
from .records import SongReader, SongWriter
from .schema import SchemaBootstrapper
from .session import ClusterSession

LOG = logging.getLogger(__name__)

DEMO_SONG = Song(
    id=uuid.UUID("2cc9ccb7-6221-4ccb-8387-f22b6a1b354d"),
    title="Lost In Love Mashup | Incomplete love - Emotional Mashup",
    album="AB Ambients Chillout",
    artist="Sunix Thakur",
)


def run(config: AppConfig, song: Song = DEMO_SONG) -> list[Song]:
    """Ensure the schema, insert ``song`` and return every row sharing its id.

    Each step must succeed before the next one starts. The session is closed
    on every exit path.
    """

    connection = config.connection_config()
    with ClusterSession(connection) as session:
        bootstrapper = SchemaBootstrapper(session)
        bootstrapper.ensure_keyspace(config.keyspace, replication_factor=config.replication_factor)
        table = bootstrapper.ensure_table(config.qualified_table)
        SongWriter(session, table).insert(song)
        return SongReader(session, table).find(Song(id=song.id))


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="songbook", description=__doc__)
    parser.add_argument("--config", type=Path, default=None, help="Path to a TOML config file")
    parser.add_argument(
        "--host",
        dest="hosts",
        action="append",
        default=None,
        help="Cluster contact point (repeat for several hosts)",
    )
    parser.add_argument("--port", type=int, default=None, help="Native protocol port")
    parser.add_argument("--keyspace", default=None, help="Keyspace to create and use")
    parser.add_argument("--consistency", default=None, help="Consistency level, e.g. ONE or QUORUM")
    parser.add_argument("--log-level", dest="log_level", default=None, help="Logging level")
    return parser.parse_args(argv)


def _load_app_config(args: argparse.Namespace) -> AppConfig:
    return load_config(args.config).with_overrides(
        hosts=args.hosts,
        port=args.port,
        keyspace=args.keyspace,
        consistency=args.consistency,
        log_level=args.log_level,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Run the demo; returns the process exit status."""

    args = parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    try:
        config = _load_app_config(args)
    except (ValidationError, ValueError) as exc:
        LOG.error("Invalid configuration: %s", exc)
        return 2
    logging.getLogger("songbook").setLevel(config.log_level)
    try:
        songs = run(config)
    except DatabaseError as exc:
        LOG.error("%s error: %s", exc.kind.capitalize(), exc)
        return 1
    for song in songs:
        LOG.info("%s", song)
    return 0


__all__ = ["DEMO_SONG", "main", "parse_args", "run"]
