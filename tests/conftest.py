"""Shared test fixtures for kube-badge."""

import asyncio
from typing import Any, List, Optional
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from kube_badge.k8s_client import ClusterQueryError


# ---------------------------------------------------------------------------
# Environment fixture (keeps host env vars out of Settings)
# ---------------------------------------------------------------------------


@pytest.fixture
def settings_env(monkeypatch, tmp_path):
    """Clear APP_* variables and run from an empty directory (no .env)."""
    for key in (
        "APP_DEBUG",
        "APP_PORT",
        "APP_ENV",
        "APP_HOST",
        "APP_KUBECONFIG_PATH",
        "APP_HEALTHY_POD_PHASES",
        "APP_SHUTDOWN_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings(settings_env):
    from kube_badge.config import Settings

    return Settings(env="staging")


# ---------------------------------------------------------------------------
# Resource builders
# ---------------------------------------------------------------------------


def _make_pod(phase: Optional[str], name: str = "pod"):
    """Build a mock V1Pod with the given status.phase."""
    pod = MagicMock()
    pod.metadata.name = name
    pod.status.phase = phase
    return pod


def _make_node(*condition_statuses: str, name: str = "node"):
    """Build a mock V1Node whose conditions carry the given statuses, in order."""
    node = MagicMock()
    node.metadata.name = name
    conditions = []
    for i, status in enumerate(condition_statuses):
        c = MagicMock()
        c.type = "Ready" if i == len(condition_statuses) - 1 else f"Pressure{i}"
        c.status = status
        conditions.append(c)
    node.status.conditions = conditions
    return node


@pytest.fixture
def make_pod():
    return _make_pod


@pytest.fixture
def make_node():
    return _make_node


# ---------------------------------------------------------------------------
# Fake cluster handle
# ---------------------------------------------------------------------------


class FakeCluster:
    """In-memory stand-in for K8sClient."""

    def __init__(
        self,
        pods: Optional[List[Any]] = None,
        nodes: Optional[List[Any]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.pods = pods or []
        self.nodes = nodes or []
        self.error = error
        self.delay = delay
        self.calls = 0
        self.started = asyncio.Event()
        self.completed = 0

    async def _list(self, items):
        self.calls += 1
        self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.completed += 1
        return list(items)

    async def list_pods(self):
        return await self._list(self.pods)

    async def list_nodes(self):
        return await self._list(self.nodes)


@pytest.fixture
def cluster_factory():
    return FakeCluster


@pytest.fixture
def fake_cluster():
    return FakeCluster()


@pytest.fixture
def broken_cluster():
    """A cluster whose every query fails at the transport level."""
    return FakeCluster(
        error=ClusterQueryError("Max retries exceeded with url: /api/v1/pods")
    )


# ---------------------------------------------------------------------------
# httpx / FastAPI test client
# ---------------------------------------------------------------------------


@pytest.fixture
def make_client(settings):
    """Factory for an async httpx client bound to an app with the given cluster."""
    from httpx import ASGITransport, AsyncClient

    from kube_badge.api import create_app

    def _make(cluster):
        app = create_app(settings, cluster)
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _make


@pytest_asyncio.fixture
async def async_client(make_client, fake_cluster):
    """Async httpx test client backed by ``fake_cluster``."""
    async with make_client(fake_cluster) as ac:
        yield ac
