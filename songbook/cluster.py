"""Cluster connection settings and their translation to driver objects."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from cassandra import ConsistencyLevel, OperationTimedOut, Timeout, Unavailable
from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile, NoHostAvailable
from cassandra.policies import LoadBalancingPolicy, RetryPolicy, RoundRobinPolicy, TokenAwarePolicy
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

LOG = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class Consistency(str, Enum):
    """Replica acknowledgement levels understood by the cluster."""

    ANY = "ANY"
    ONE = "ONE"
    TWO = "TWO"
    THREE = "THREE"
    QUORUM = "QUORUM"
    ALL = "ALL"
    LOCAL_QUORUM = "LOCAL_QUORUM"
    EACH_QUORUM = "EACH_QUORUM"
    SERIAL = "SERIAL"
    LOCAL_SERIAL = "LOCAL_SERIAL"
    LOCAL_ONE = "LOCAL_ONE"

    @classmethod
    def parse(cls, value: "str | int | Consistency") -> "Consistency":
        """Accept an enum member, a level name or a driver level number."""

        if isinstance(value, Consistency):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            name = ConsistencyLevel.value_to_name.get(value)
            if name is None:
                raise ValueError(f"Unknown consistency level {value}.")
            return cls(name)
        if not isinstance(value, str):
            raise ValueError(f"Unknown consistency level {value!r}.")
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown consistency level '{value}'.") from None

    @property
    def driver_level(self) -> int:
        return getattr(ConsistencyLevel, self.value)


class HostSelectionPolicy(str, Enum):
    """How a coordinator node is picked for each statement."""

    ROUND_ROBIN = "round_robin"
    TOKEN_AWARE_ROUND_ROBIN = "token_aware_round_robin"


@dataclass(frozen=True, slots=True)
class RetryPolicyConfig:
    """Exponential backoff bounds (seconds) and retry budget."""

    min_backoff: float = 1.0
    max_backoff: float = 10.0
    max_retries: int = 5

    def __post_init__(self) -> None:
        if self.min_backoff <= 0:
            raise ValueError("Minimum backoff must be positive.")
        if self.min_backoff > self.max_backoff:
            raise ValueError("Minimum backoff cannot exceed maximum backoff.")
        if self.max_retries < 0:
            raise ValueError("Retry count cannot be negative.")


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Everything needed to open a session; owns no runtime resources."""

    hosts: tuple[str, ...]
    port: int
    consistency: Consistency
    timeout: float = DEFAULT_TIMEOUT
    retry: RetryPolicyConfig = field(default_factory=RetryPolicyConfig)
    host_selection: HostSelectionPolicy = HostSelectionPolicy.TOKEN_AWARE_ROUND_ROBIN

    def __post_init__(self) -> None:
        if not self.hosts:
            raise ValueError("At least one host is required.")
        if any(not host for host in self.hosts):
            raise ValueError("Host addresses cannot be empty.")
        if not 0 < self.port < 65536:
            raise ValueError(f"Port {self.port} is out of range.")
        if self.timeout <= 0:
            raise ValueError("Timeout must be positive.")


def create_cluster_config(
    consistency: Consistency | str,
    port: int,
    *hosts: str,
    retry: RetryPolicyConfig | None = None,
) -> ConnectionConfig:
    """Assemble connection settings: 5s timeout, backoff retries, token-aware routing."""

    if not hosts:
        raise ValueError("At least one host is required.")
    return ConnectionConfig(
        hosts=tuple(hosts),
        port=port,
        consistency=Consistency.parse(consistency),
        timeout=DEFAULT_TIMEOUT,
        retry=retry or RetryPolicyConfig(),
        host_selection=HostSelectionPolicy.TOKEN_AWARE_ROUND_ROBIN,
    )


RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    Timeout,
    Unavailable,
    OperationTimedOut,
    NoHostAvailable,
)


def statement_retrying(
    settings: RetryPolicyConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """Re-run a whole statement with exponential backoff between attempts.

    Waits run on the calling thread, never on the driver's event loop. The
    wait before retry ``n`` (1-based) is ``min_backoff * 2**(n - 1)`` capped
    at ``max_backoff``. Only timeout and availability errors are retried;
    the last error is re-raised once ``max_retries`` retries are spent.
    """

    return Retrying(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        wait=wait_exponential(
            multiplier=settings.min_backoff,
            min=settings.min_backoff,
            max=settings.max_backoff,
        ),
        stop=stop_after_attempt(settings.max_retries + 1),
        sleep=sleep,
        before_sleep=before_sleep_log(LOG, logging.WARNING),
        reraise=True,
    )


class ExponentialBackoffRetryPolicy(RetryPolicy):
    """Driver-side half of the backoff retry: move on to the next host.

    Every failure kind hands the statement to the next host in the query
    plan, keeping its consistency, until ``max_retries`` hops are spent.
    Decisions return immediately because the driver calls them on its I/O
    thread; the exponential wait lives in ``statement_retrying``.
    """

    def __init__(self, settings: RetryPolicyConfig) -> None:
        self._settings = settings

    @property
    def settings(self) -> RetryPolicyConfig:
        return self._settings

    def on_read_timeout(
        self, query, consistency, required_responses, received_responses, data_retrieved, retry_num
    ):
        return self._decide(consistency, retry_num, "read timeout")

    def on_write_timeout(
        self, query, consistency, write_type, required_responses, received_responses, retry_num
    ):
        return self._decide(consistency, retry_num, "write timeout")

    def on_unavailable(self, query, consistency, required_replicas, alive_replicas, retry_num):
        return self._decide(consistency, retry_num, "unavailable")

    def on_request_error(self, query, consistency, error, retry_num):
        return self._decide(consistency, retry_num, "request error")

    def _decide(self, consistency, retry_num: int, reason: str):
        if retry_num >= self._settings.max_retries:
            return self.RETHROW, None
        LOG.debug("Moving to next host after %s (attempt %d)", reason, retry_num + 1)
        return self.RETRY_NEXT_HOST, consistency


def load_balancing_policy(selection: HostSelectionPolicy) -> LoadBalancingPolicy:
    if selection is HostSelectionPolicy.TOKEN_AWARE_ROUND_ROBIN:
        return TokenAwarePolicy(RoundRobinPolicy())
    return RoundRobinPolicy()


def build_cluster(config: ConnectionConfig) -> Cluster:
    """Create (but do not connect) a driver cluster for the settings."""

    profile = ExecutionProfile(
        load_balancing_policy=load_balancing_policy(config.host_selection),
        retry_policy=ExponentialBackoffRetryPolicy(config.retry),
        consistency_level=config.consistency.driver_level,
        request_timeout=config.timeout,
    )
    return Cluster(
        contact_points=list(config.hosts),
        port=config.port,
        execution_profiles={EXEC_PROFILE_DEFAULT: profile},
        connect_timeout=config.timeout,
    )


__all__ = [
    "Consistency",
    "ConnectionConfig",
    "DEFAULT_TIMEOUT",
    "ExponentialBackoffRetryPolicy",
    "HostSelectionPolicy",
    "RetryPolicyConfig",
    "RETRYABLE_ERRORS",
    "build_cluster",
    "create_cluster_config",
    "load_balancing_policy",
    "statement_retrying",
]
