"""Behavioural coverage for the pre and post hook gate."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from appsub.constants import ANNOTATION_RECONCILE_RATE
from appsub.hooks.registry import HookRegistry
from appsub.hooks.source import GitHookSource
from appsub.resources.documents import dump_document
from appsub.sync.item import SubscriberItem, TickOutcome
from tests.helpers.builders import (
    deployment_yaml,
    hook_job,
    make_subscription,
    write_tree,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

    from appsub.config import AppSubConfig
    from appsub.sync.item import SyncDependencies
    from tests.helpers.fakes import FakeClusterClient, FakeGitTransport


class HookContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    item: SubscriberItem
    outcome: TickOutcome


@scenario("../hook_gate.feature", "Pre-hooks hold the deployment until they succeed")
def test_pre_hooks_gate_deployment() -> None:
    """Wrap the pytest-bdd scenario."""


@scenario("../hook_gate.feature", "Hook history is written to the subscription status")
def test_hook_history_in_status() -> None:
    """Applied hook instances should be recorded on the status."""


@pytest.fixture
def hook_context() -> HookContext:
    return {}


@pytest.fixture
def registry(
    deps: SyncDependencies,
    cluster: FakeClusterClient,
    transport: FakeGitTransport,
    config: AppSubConfig,
) -> HookRegistry:
    """Wire a registry reading templates from the fake repository."""
    registry = HookRegistry(
        cluster, GitHookSource(cluster, transport, work_dir=config.work_dir)
    )
    deps.hooks = registry
    return registry


@given("a Git repository holding a deployment with pre and post hooks")
def given_repository(repo_dir: Path) -> None:
    write_tree(
        repo_dir,
        {
            "deploy.yaml": deployment_yaml("web"),
            "prehook/pre.yaml": dump_document(hook_job("pre")),
            "posthook/post.yaml": dump_document(hook_job("post")),
        },
    )


@given("a registered high-rate subscription to that repository")
def given_registered_subscription(
    hook_context: HookContext,
    deps: SyncDependencies,
    cluster: FakeClusterClient,
    registry: HookRegistry,
) -> None:
    subscription = make_subscription(annotations={ANNOTATION_RECONCILE_RATE: "high"})
    cluster.add_subscription(subscription)
    asyncio.run(registry.register_subscription(subscription.key))
    hook_context["item"] = SubscriberItem(subscription, deps)


@when("the subscription ticks")
def when_tick(hook_context: HookContext) -> None:
    hook_context["outcome"] = asyncio.run(hook_context["item"].tick())


@when("the hook jobs succeed")
def when_hooks_succeed(cluster: FakeClusterClient) -> None:
    cluster.complete_all_jobs()


@then(parsers.parse('the tick outcome is "{outcome}"'))
def then_outcome(hook_context: HookContext, outcome: str) -> None:
    assert hook_context["outcome"] is TickOutcome(outcome)


@then(parsers.parse('the submitted hook jobs are "{names}"'))
def then_submitted_jobs(cluster: FakeClusterClient, names: str) -> None:
    submitted = [job["metadata"]["name"] for job in cluster.applied_jobs]
    assert submitted == names.split(",")


@then(parsers.parse('the status records "{name}" as the last pre-hook job'))
def then_last_pre_hook(cluster: FakeClusterClient, name: str) -> None:
    hook_jobs = cluster.status_updates[-1].status.hook_jobs
    assert hook_jobs is not None
    assert hook_jobs.last_prehook_job == name


@then(parsers.parse('the status records "{name}" as the last post-hook job'))
def then_last_post_hook(cluster: FakeClusterClient, name: str) -> None:
    hook_jobs = cluster.status_updates[-1].status.hook_jobs
    assert hook_jobs is not None
    assert hook_jobs.last_posthook_job == name
