"""Unit tests for hook template discovery."""

from __future__ import annotations

import typing as typ

import pytest

from appsub.constants import ANNOTATION_GIT_PATH
from appsub.errors import GitCommandError, HookError
from appsub.hooks.source import (
    GitHookSource,
    HookSource,
    discover_templates,
    is_hook_job,
)
from appsub.resources.documents import dump_document
from tests.helpers.builders import (
    deployment_yaml,
    hook_job,
    make_subscription,
    write_tree,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

    from appsub.config import AppSubConfig
    from tests.helpers.fakes import FakeClusterClient, FakeGitTransport


def _job_yaml(name: str) -> str:
    return dump_document(hook_job(name))


@pytest.mark.parametrize(
    ("document", "expected"),
    [
        (hook_job("a"), True),
        ({"apiVersion": "v1", "kind": "AnsibleJob"}, False),
        ({"apiVersion": "tower.ansible.com/v1alpha1", "kind": "JobTemplate"}, False),
        (None, False),
    ],
)
def test_is_hook_job(document: dict[str, typ.Any] | None, expected: bool) -> None:  # noqa: FBT001
    assert is_hook_job(document) is expected


class TestDiscoverTemplates:
    """discover_templates walks one hook directory."""

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert discover_templates(tmp_path / "prehook", "pre") == []

    def test_collects_jobs_in_sorted_order(self, tmp_path: Path) -> None:
        """Non-job documents and non-YAML files are ignored."""
        write_tree(
            tmp_path,
            {
                "b.yaml": _job_yaml("second"),
                "a.yaml": "\n---\n".join([_job_yaml("first"), deployment_yaml("x")]),
                "nested/c.yml": _job_yaml("third"),
                "notes.txt": _job_yaml("ignored"),
            },
        )

        templates = discover_templates(tmp_path, "pre")

        names = [template["metadata"]["name"] for template in templates]
        assert names == ["first", "second", "third"]

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        write_tree(tmp_path, {"broken.yaml": "kind: [\n"})
        with pytest.raises(HookError, match="failed to find post hooks"):
            discover_templates(tmp_path, "post")


class TestGitHookSource:
    """GitHookSource clones the repository and reads both sides."""

    @pytest.fixture
    def source(
        self,
        cluster: FakeClusterClient,
        transport: FakeGitTransport,
        config: AppSubConfig,
    ) -> GitHookSource:
        return GitHookSource(cluster, transport, work_dir=config.work_dir)

    def test_satisfies_protocol(self, source: GitHookSource) -> None:
        assert isinstance(source, HookSource)

    @pytest.mark.asyncio
    async def test_loads_both_sides(
        self,
        source: GitHookSource,
        repo_dir: Path,
        transport: FakeGitTransport,
        config: AppSubConfig,
    ) -> None:
        write_tree(
            repo_dir,
            {
                "apps/prehook/pre.yaml": _job_yaml("pre"),
                "apps/posthook/post.yaml": _job_yaml("post"),
                "apps/deploy.yaml": deployment_yaml("web"),
            },
        )
        subscription = make_subscription(annotations={ANNOTATION_GIT_PATH: "apps"})

        templates = await source.load(subscription)

        assert [t["metadata"]["name"] for t in templates.pre] == ["pre"]
        assert [t["metadata"]["name"] for t in templates.post] == ["post"]
        dest_dir = transport.clone_calls[0].dest_dir
        assert dest_dir.parent == config.work_dir / "hooks"

    @pytest.mark.asyncio
    async def test_broken_side_is_empty(
        self, source: GitHookSource, repo_dir: Path
    ) -> None:
        """A parse failure in one side does not hide the other."""
        write_tree(
            repo_dir,
            {"prehook/bad.yaml": "kind: [\n", "posthook/post.yaml": _job_yaml("post")},
        )

        templates = await source.load(make_subscription())

        assert templates.pre == []
        assert len(templates.post) == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(
        self, source: GitHookSource, transport: FakeGitTransport
    ) -> None:
        transport.error = GitCommandError.failed(["fetch"], "denied")
        with pytest.raises(GitCommandError):
            await source.load(make_subscription())
