"""Behavioural coverage for the Git subscription sync loop."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from appsub.constants import ANNOTATION_RECONCILE_RATE, LABEL_PAUSE
from appsub.errors import GitCommandError
from appsub.sync.item import SubscriberItem, TickOutcome
from tests.helpers.builders import (
    CRD_YAML,
    NAMESPACE_YAML,
    SERVICE_ACCOUNT_YAML,
    deployment_yaml,
    make_subscription,
    write_tree,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

    from appsub.models import Subscription
    from appsub.sync.item import SyncDependencies
    from tests.helpers.fakes import (
        FakeApplyEngine,
        FakeClusterClient,
        FakeGitTransport,
    )


class SyncContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    subscription: Subscription
    item: SubscriberItem
    outcome: TickOutcome


@scenario(
    "../sync_loop.feature", "A tick deploys repository manifests in dependency order"
)
def test_tick_deploys_in_order() -> None:
    """Wrap the pytest-bdd scenario."""


@scenario("../sync_loop.feature", "A paused subscription is left alone")
def test_paused_subscription_skipped() -> None:
    """Paused subscriptions should not reach the apply engine."""


@scenario(
    "../sync_loop.feature", "A failed fetch is reported on the subscription status"
)
def test_failed_fetch_reported() -> None:
    """Fetch failures should surface on the subscription status."""


@pytest.fixture
def sync_context() -> SyncContext:
    return {}


@given(
    "a Git repository holding a deployment, a service account, a CRD and a namespace"
)
def given_repository(repo_dir: Path) -> None:
    write_tree(
        repo_dir,
        {
            "deploy.yaml": deployment_yaml("web"),
            "rbac.yaml": SERVICE_ACCOUNT_YAML,
            "crd.yaml": CRD_YAML,
            "namespace.yaml": NAMESPACE_YAML,
        },
    )


@given("a Git repository that cannot be cloned")
def given_broken_repository(transport: FakeGitTransport) -> None:
    transport.error = GitCommandError.failed(["clone"], "repository not found")


@given("a high-rate subscription to that repository")
def given_subscription(sync_context: SyncContext) -> None:
    sync_context["subscription"] = make_subscription(
        annotations={ANNOTATION_RECONCILE_RATE: "high"}
    )


@given("a paused high-rate subscription to that repository")
def given_paused_subscription(sync_context: SyncContext) -> None:
    sync_context["subscription"] = make_subscription(
        annotations={ANNOTATION_RECONCILE_RATE: "high"},
        labels={LABEL_PAUSE: "true"},
    )


@when("the subscription ticks")
def when_tick(
    sync_context: SyncContext, deps: SyncDependencies, cluster: FakeClusterClient
) -> None:
    subscription = sync_context["subscription"]
    cluster.add_subscription(subscription)
    item = sync_context.setdefault("item", SubscriberItem(subscription, deps))
    sync_context["outcome"] = asyncio.run(item.tick())


@then(parsers.parse('the tick outcome is "{outcome}"'))
def then_outcome(sync_context: SyncContext, outcome: str) -> None:
    assert sync_context["outcome"] is TickOutcome(outcome)


@then(parsers.parse('the apply engine receives "{kinds}"'))
def then_applied_kinds(apply_engine: FakeApplyEngine, kinds: str) -> None:
    assert apply_engine.last_kinds == kinds.split(",")


@then("the apply engine receives nothing")
def then_nothing_applied(apply_engine: FakeApplyEngine) -> None:
    assert apply_engine.calls == []


@then(parsers.parse('the subscription status phase is "{phase}"'))
def then_status_phase(cluster: FakeClusterClient, phase: str) -> None:
    assert cluster.status_updates, "expected a status update"
    assert cluster.status_updates[-1].status.phase == phase


@then(parsers.parse('the subscription status message mentions "{text}"'))
def then_status_message(cluster: FakeClusterClient, text: str) -> None:
    assert text in cluster.status_updates[-1].status.message
