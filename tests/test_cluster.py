"""Tests for connection settings and driver policy wiring."""

from __future__ import annotations

import time
from typing import Any

import pytest
from cassandra import ConsistencyLevel, InvalidRequest, OperationTimedOut, Unavailable
from cassandra.cluster import EXEC_PROFILE_DEFAULT
from cassandra.policies import RetryPolicy, RoundRobinPolicy, TokenAwarePolicy

from songbook.cluster import (
    DEFAULT_TIMEOUT,
    Consistency,
    ConnectionConfig,
    ExponentialBackoffRetryPolicy,
    HostSelectionPolicy,
    RetryPolicyConfig,
    build_cluster,
    create_cluster_config,
    statement_retrying,
)


@pytest.mark.parametrize(
    ("min_backoff", "max_backoff", "max_retries"),
    [(1.0, 10.0, 5), (0.5, 0.5, 0), (2.0, 60.0, 12)],
)
def test_create_cluster_config_echoes_inputs(min_backoff: float, max_backoff: float, max_retries: int) -> None:
    retry = RetryPolicyConfig(min_backoff=min_backoff, max_backoff=max_backoff, max_retries=max_retries)

    config = create_cluster_config(Consistency.QUORUM, 9043, "10.0.0.1", "10.0.0.2", retry=retry)

    assert config.hosts == ("10.0.0.1", "10.0.0.2")
    assert config.port == 9043
    assert config.consistency is Consistency.QUORUM
    assert config.timeout == DEFAULT_TIMEOUT == 5.0
    assert config.retry == retry
    assert config.host_selection is HostSelectionPolicy.TOKEN_AWARE_ROUND_ROBIN


def test_create_cluster_config_uses_default_backoff() -> None:
    config = create_cluster_config("one", 9042, "127.0.0.1")

    assert config.consistency is Consistency.ONE
    assert config.retry == RetryPolicyConfig(min_backoff=1.0, max_backoff=10.0, max_retries=5)


def test_create_cluster_config_requires_hosts() -> None:
    with pytest.raises(ValueError, match="host"):
        create_cluster_config(Consistency.ONE, 9042)


@pytest.mark.parametrize("port", [0, 70000])
def test_connection_config_rejects_bad_ports(port: int) -> None:
    with pytest.raises(ValueError):
        ConnectionConfig(hosts=("127.0.0.1",), port=port, consistency=Consistency.ONE)


@pytest.mark.parametrize(
    ("min_backoff", "max_backoff", "max_retries"),
    [(5.0, 1.0, 3), (0.0, 1.0, 3), (1.0, 2.0, -1)],
)
def test_retry_policy_config_rejects_invalid_bounds(min_backoff: float, max_backoff: float, max_retries: int) -> None:
    with pytest.raises(ValueError):
        RetryPolicyConfig(min_backoff=min_backoff, max_backoff=max_backoff, max_retries=max_retries)


def test_consistency_parse_rejects_unknown_levels() -> None:
    with pytest.raises(ValueError, match="Unknown consistency"):
        Consistency.parse("most")


def test_consistency_maps_to_driver_levels() -> None:
    assert Consistency.parse(" local_quorum ").driver_level == ConsistencyLevel.LOCAL_QUORUM
    assert Consistency.ONE.driver_level == ConsistencyLevel.ONE


def test_consistency_parse_accepts_driver_level_numbers() -> None:
    assert Consistency.parse(1) is Consistency.ONE
    assert Consistency.parse(ConsistencyLevel.LOCAL_QUORUM) is Consistency.LOCAL_QUORUM


@pytest.mark.parametrize("value", [99, 2.5, None, True])
def test_consistency_parse_rejects_unknown_types_with_value_error(value: object) -> None:
    with pytest.raises(ValueError, match="Unknown consistency"):
        Consistency.parse(value)  # type: ignore[arg-type]


def test_retry_policy_moves_every_failure_to_next_host() -> None:
    policy = ExponentialBackoffRetryPolicy(RetryPolicyConfig(max_retries=2))

    decisions = [
        policy.on_read_timeout(
            None,
            consistency=ConsistencyLevel.ONE,
            required_responses=1,
            received_responses=0,
            data_retrieved=False,
            retry_num=0,
        ),
        policy.on_write_timeout(
            None,
            consistency=ConsistencyLevel.ONE,
            write_type="SIMPLE",
            required_responses=1,
            received_responses=0,
            retry_num=1,
        ),
        policy.on_unavailable(
            None, consistency=ConsistencyLevel.ONE, required_replicas=1, alive_replicas=0, retry_num=0
        ),
        policy.on_request_error(None, consistency=ConsistencyLevel.QUORUM, error=RuntimeError("reset"), retry_num=1),
    ]

    assert decisions == [
        (RetryPolicy.RETRY_NEXT_HOST, ConsistencyLevel.ONE),
        (RetryPolicy.RETRY_NEXT_HOST, ConsistencyLevel.ONE),
        (RetryPolicy.RETRY_NEXT_HOST, ConsistencyLevel.ONE),
        (RetryPolicy.RETRY_NEXT_HOST, ConsistencyLevel.QUORUM),
    ]


def test_retry_policy_rethrows_once_budget_is_spent() -> None:
    policy = ExponentialBackoffRetryPolicy(RetryPolicyConfig(max_retries=2))

    decision = policy.on_unavailable(
        None, consistency=ConsistencyLevel.ONE, required_replicas=1, alive_replicas=0, retry_num=2
    )

    assert decision == (RetryPolicy.RETHROW, None)
    assert ExponentialBackoffRetryPolicy(RetryPolicyConfig(max_retries=0)).on_read_timeout(
        None, ConsistencyLevel.ONE, 1, 0, False, 0
    ) == (RetryPolicy.RETHROW, None)


def test_retry_policy_decides_without_blocking(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(time, "sleep", lambda _: pytest.fail("driver callbacks must not sleep"))
    policy = ExponentialBackoffRetryPolicy(RetryPolicyConfig(min_backoff=5.0, max_backoff=10.0))

    started = time.perf_counter()
    for retry_num in range(5):
        policy.on_read_timeout(
            None,
            consistency=ConsistencyLevel.ONE,
            required_responses=1,
            received_responses=0,
            data_retrieved=False,
            retry_num=retry_num,
        )

    assert time.perf_counter() - started < 0.1


def test_statement_retrying_backs_off_exponentially() -> None:
    slept: list[float] = []
    retrying = statement_retrying(
        RetryPolicyConfig(min_backoff=1.0, max_backoff=10.0, max_retries=5),
        sleep=slept.append,
    )
    errors = [Unavailable("down") for _ in range(5)]

    def _flaky() -> str:
        if errors:
            raise errors.pop()
        return "ok"

    assert retrying(_flaky) == "ok"
    assert slept == [1.0, 2.0, 4.0, 8.0, 10.0]


def test_statement_retrying_reraises_after_budget() -> None:
    slept: list[float] = []
    retrying = statement_retrying(RetryPolicyConfig(max_retries=2), sleep=slept.append)
    calls: list[int] = []

    def _always_times_out() -> None:
        calls.append(1)
        raise OperationTimedOut("timed out")

    with pytest.raises(OperationTimedOut):
        retrying(_always_times_out)

    assert len(calls) == 3
    assert slept == [1.0, 2.0]


def test_statement_retrying_skips_non_transient_errors() -> None:
    retrying = statement_retrying(RetryPolicyConfig(), sleep=lambda _: pytest.fail("should not sleep"))
    calls: list[int] = []

    def _rejected() -> None:
        calls.append(1)
        raise InvalidRequest("bad statement")

    with pytest.raises(InvalidRequest):
        retrying(_rejected)

    assert calls == [1]


def test_build_cluster_wires_execution_profile(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def _cluster(**kwargs: Any) -> str:
        captured.update(kwargs)
        return "cluster"

    monkeypatch.setattr("songbook.cluster.Cluster", _cluster)
    config = create_cluster_config(Consistency.QUORUM, 9042, "10.0.0.1")

    result = build_cluster(config)

    assert result == "cluster"
    assert captured["contact_points"] == ["10.0.0.1"]
    assert captured["port"] == 9042
    assert captured["connect_timeout"] == 5.0
    profile = captured["execution_profiles"][EXEC_PROFILE_DEFAULT]
    assert profile.request_timeout == 5.0
    assert profile.consistency_level == ConsistencyLevel.QUORUM
    assert isinstance(profile.load_balancing_policy, TokenAwarePolicy)
    assert isinstance(profile.load_balancing_policy._child_policy, RoundRobinPolicy)
    assert isinstance(profile.retry_policy, ExponentialBackoffRetryPolicy)
    assert profile.retry_policy.settings == config.retry


def test_build_cluster_supports_plain_round_robin(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}
    monkeypatch.setattr("songbook.cluster.Cluster", lambda **kwargs: captured.update(kwargs))
    config = ConnectionConfig(
        hosts=("127.0.0.1",),
        port=9042,
        consistency=Consistency.ONE,
        host_selection=HostSelectionPolicy.ROUND_ROBIN,
    )

    build_cluster(config)

    policy = captured["execution_profiles"][EXEC_PROFILE_DEFAULT].load_balancing_policy
    assert type(policy) is RoundRobinPolicy
