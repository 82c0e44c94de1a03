"""Unit tests for resource path resolution."""

from __future__ import annotations

import typing as typ

import pytest

from appsub.constants import ANNOTATION_GIT_PATH, ANNOTATION_GITHUB_PATH
from appsub.sync.paths import load_filter_config, resource_path, resource_subpath
from tests.helpers.builders import make_config_map, make_subscription
from tests.helpers.fakes import FakeClusterClient

if typ.TYPE_CHECKING:
    from pathlib import Path

FILTER_REF = {"packageFilter": {"filterRef": {"name": "filter"}}}


class TestResourceSubpath:
    """Annotation and config map precedence."""

    def test_github_path_wins(self) -> None:
        subscription = make_subscription(
            annotations={ANNOTATION_GITHUB_PATH: "/gh/", ANNOTATION_GIT_PATH: "git"}
        )
        config_map = make_config_map("filter", data={"path": "cm"})
        assert resource_subpath(subscription, config_map) == "gh"

    def test_git_path_beats_config_map(self) -> None:
        subscription = make_subscription(annotations={ANNOTATION_GIT_PATH: "git"})
        config_map = make_config_map("filter", data={"path": "cm"})
        assert resource_subpath(subscription, config_map) == "git"

    def test_config_map_path(self) -> None:
        config_map = make_config_map("filter", data={"path": " apps/web/ "})
        assert resource_subpath(make_subscription(), config_map) == "apps/web"

    def test_repository_root_by_default(self) -> None:
        assert resource_subpath(make_subscription(), None) == ""

    def test_slash_only_annotation_falls_through(self) -> None:
        subscription = make_subscription(annotations={ANNOTATION_GITHUB_PATH: "/"})
        config_map = make_config_map("filter", data={"path": "cm"})
        assert resource_subpath(subscription, config_map) == "cm"

    def test_custom_resolvers_in_order(self) -> None:
        """The first resolver with a non-empty answer wins."""
        resolvers = [
            lambda _sub, _cm: "",
            lambda _sub, _cm: "first",
            lambda _sub, _cm: "second",
        ]
        assert resource_subpath(make_subscription(), None, resolvers) == "first"


def test_resource_path(tmp_path: Path) -> None:
    subscription = make_subscription(annotations={ANNOTATION_GIT_PATH: "apps"})
    assert resource_path(tmp_path, subscription, None) == tmp_path / "apps"
    assert resource_path(tmp_path, make_subscription(), None) == tmp_path


class TestLoadFilterConfig:
    """Fetching the filterRef config map."""

    @pytest.mark.asyncio
    async def test_without_filter_ref(self) -> None:
        cluster = FakeClusterClient()
        assert await load_filter_config(make_subscription(), cluster) is None

    @pytest.mark.asyncio
    async def test_reads_subscription_namespace(self) -> None:
        cluster = FakeClusterClient()
        cluster.add_config_map(make_config_map("filter", "apps", data={"path": "x"}))
        subscription = make_subscription(namespace="apps", spec=FILTER_REF)

        config_map = await load_filter_config(subscription, cluster)

        assert config_map is not None
        assert config_map.data == {"path": "x"}

    @pytest.mark.asyncio
    async def test_missing_config_map(self) -> None:
        subscription = make_subscription(spec=FILTER_REF)
        assert await load_filter_config(subscription, FakeClusterClient()) is None
