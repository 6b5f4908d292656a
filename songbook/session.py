"""Scoped cluster session wrapping the driver's Cluster/Session pair."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Sequence

from cassandra.cluster import Cluster, Session

from .cluster import ConnectionConfig, build_cluster, statement_retrying
from .errors import ClusterConnectionError

LOG = logging.getLogger(__name__)


class ClusterSession:
    """Owns one driver session; release it with ``close`` or a ``with`` block."""

    def __init__(
        self,
        config: ConnectionConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._cluster: Cluster | None = None
        self._session: Session | None = None
        self._closed = False
        self._retrying = statement_retrying(config.retry, sleep=sleep)

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def connected(self) -> bool:
        return self._session is not None and not self._closed

    def connect(self) -> "ClusterSession":
        """Open the driver session; raises ``ClusterConnectionError`` on failure."""

        if self._closed:
            raise ClusterConnectionError("Session has already been closed.")
        if self._session is not None:
            return self
        hosts = ", ".join(self._config.hosts)
        started = time.perf_counter()
        try:
            self._cluster = build_cluster(self._config)
            self._session = self._cluster.connect()
        except Exception as exc:
            self._shutdown_cluster()
            raise ClusterConnectionError(
                f"Failed to connect to {hosts} on port {self._config.port}: {exc}"
            ) from exc
        latency_ms = int((time.perf_counter() - started) * 1000)
        LOG.info("Connected to cluster at %s:%d in %dms", hosts, self._config.port, latency_ms)
        return self

    def execute(self, statement: Any, params: Sequence[Any] | None = None) -> Any:
        """Run a statement, backing off between retries of timeouts and unavailability."""

        session = self._require_session()
        return self._retrying(session.execute, statement, params)

    def prepare(self, cql: str) -> Any:
        return self._require_session().prepare(cql)

    def close(self) -> None:
        """Shut the session and cluster down; later calls do nothing."""

        if self._closed:
            return
        self._closed = True
        session, self._session = self._session, None
        if session is not None:
            try:
                session.shutdown()
            except Exception as exc:  # best effort; keep any error already in flight
                LOG.warning("Session shutdown failed: %s", exc)
        self._shutdown_cluster()
        LOG.info("Cluster session closed")

    def __enter__(self) -> "ClusterSession":
        return self.connect()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _require_session(self) -> Session:
        if self._session is None or self._closed:
            raise ClusterConnectionError("Session is not connected.")
        return self._session

    def _shutdown_cluster(self) -> None:
        cluster, self._cluster = self._cluster, None
        if cluster is None:
            return
        try:
            cluster.shutdown()
        except Exception as exc:  # best effort, like session shutdown
            LOG.warning("Cluster shutdown failed: %s", exc)


__all__ = ["ClusterSession"]
