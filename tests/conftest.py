"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from appsub.config import AppSubConfig
from appsub.sync.item import SyncDependencies
from tests.helpers.builders import make_channel
from tests.helpers.fakes import (
    FakeApplyEngine,
    FakeClusterClient,
    FakeGitTransport,
    FakeKustomize,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

FIXED_NOW = dt.datetime(2099, 1, 5, 12, 0, tzinfo=dt.UTC)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """Return the directory the fake transport "clones" from."""
    path = tmp_path / "repo"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path: Path) -> AppSubConfig:
    """Return configuration with a private work dir and short periods."""
    return AppSubConfig(
        work_dir=tmp_path / "work",
        loop_period_high_s=0.05,
        loop_period_medium_s=0.05,
        loop_period_low_s=0.05,
        retry_interval_s=0.0,
    )


@pytest.fixture
def cluster() -> FakeClusterClient:
    """Return a cluster client holding the default Git channel."""
    client = FakeClusterClient()
    client.add_channel(make_channel())
    return client


@pytest.fixture
def apply_engine() -> FakeApplyEngine:
    return FakeApplyEngine()


@pytest.fixture
def transport(repo_dir: Path) -> FakeGitTransport:
    return FakeGitTransport(source=repo_dir)


@pytest.fixture
def kustomize() -> FakeKustomize:
    return FakeKustomize()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def deps(  # noqa: PLR0913
    cluster: FakeClusterClient,
    apply_engine: FakeApplyEngine,
    transport: FakeGitTransport,
    kustomize: FakeKustomize,
    config: AppSubConfig,
    sleep: RecordingSleep,
) -> SyncDependencies:
    """Return sync dependencies wired to the in-memory fakes."""
    return SyncDependencies(
        cluster=cluster,
        apply_engine=apply_engine,
        transport=transport,
        kustomize=kustomize,
        config=config,
        clock=lambda: FIXED_NOW,
        sleep=sleep,
    )
