"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from tests.fakes import FakeCluster, FakeSession


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fake_cluster(monkeypatch: pytest.MonkeyPatch) -> FakeCluster:
    """Route ``ClusterSession.connect`` to an in-memory cluster."""

    cluster = FakeCluster()
    monkeypatch.setattr("songbook.session.build_cluster", lambda config: cluster)
    return cluster
