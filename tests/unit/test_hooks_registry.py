"""Unit tests for the hook registry."""

from __future__ import annotations

import typing as typ

import msgspec
import pytest

from appsub.errors import GitFetchError, HookError
from appsub.hooks.registry import AppliedInstance, HookRegistry, HookType
from appsub.hooks.source import HookTemplates
from appsub.models import ClusterRef, SubscriptionKey
from tests.helpers.builders import hook_job, make_channel, make_subscription
from tests.helpers.fakes import FakeHookSource

if typ.TYPE_CHECKING:
    from appsub.models import Subscription
    from tests.helpers.fakes import FakeClusterClient

KEY = SubscriptionKey("default", "podinfo")


@pytest.fixture
def hook_source() -> FakeHookSource:
    return FakeHookSource(
        templates=HookTemplates(pre=[hook_job("pre")], post=[hook_job("post")])
    )


@pytest.fixture
def registry(cluster: FakeClusterClient, hook_source: FakeHookSource) -> HookRegistry:
    return HookRegistry(cluster, hook_source)


@pytest.fixture
def subscription(cluster: FakeClusterClient) -> Subscription:
    sub = make_subscription()
    cluster.add_subscription(sub)
    return sub


def _bump_generation(cluster: FakeClusterClient, generation: int) -> None:
    current = cluster.subscriptions[KEY]
    cluster.subscriptions[KEY] = msgspec.structs.replace(
        current,
        metadata=msgspec.structs.replace(current.metadata, generation=generation),
    )


class TestRegisterSubscription:
    """Discovery and registration."""

    @pytest.mark.asyncio
    async def test_registers_both_sides(
        self, registry: HookRegistry, subscription: Subscription
    ) -> None:
        del subscription
        await registry.register_subscription(KEY)

        assert registry.registered(KEY)
        assert registry.has_hooks(HookType.PRE, KEY)
        assert registry.has_hooks(HookType.POST, KEY)

    @pytest.mark.asyncio
    async def test_missing_subscription_ignored(self, registry: HookRegistry) -> None:
        await registry.register_subscription(KEY)
        assert not registry.registered(KEY)

    @pytest.mark.asyncio
    async def test_non_git_channel_ignored(
        self,
        registry: HookRegistry,
        cluster: FakeClusterClient,
        hook_source: FakeHookSource,
    ) -> None:
        cluster.add_channel(make_channel("helm", channel_type="helmrepo"))
        cluster.add_subscription(make_subscription(channel="default/helm"))

        await registry.register_subscription(KEY)

        assert not registry.registered(KEY)
        assert hook_source.loads == 0

    @pytest.mark.asyncio
    async def test_unchanged_generation_not_reloaded(
        self,
        registry: HookRegistry,
        subscription: Subscription,
        hook_source: FakeHookSource,
    ) -> None:
        del subscription
        await registry.register_subscription(KEY)
        await registry.register_subscription(KEY)
        assert hook_source.loads == 1

    @pytest.mark.asyncio
    async def test_new_generation_replaces_hooks(
        self,
        registry: HookRegistry,
        subscription: Subscription,
        cluster: FakeClusterClient,
    ) -> None:
        """A new generation drops the previous ledgers, applied or not."""
        del subscription
        await registry.register_subscription(KEY)
        await registry.apply_pre_hooks(KEY)

        _bump_generation(cluster, 2)
        await registry.register_subscription(KEY)

        assert registry.get_last_applied_instance(KEY) == AppliedInstance()
        await registry.apply_pre_hooks(KEY)
        assert registry.get_last_applied_instance(KEY).pre == "default/pre-2-100"

    @pytest.mark.asyncio
    async def test_download_failure_leaves_unregistered(
        self,
        registry: HookRegistry,
        subscription: Subscription,
        hook_source: FakeHookSource,
    ) -> None:
        """A failed download is retried on the next registration."""
        del subscription
        hook_source.error = GitFetchError.channel_not_found("default/git-channel")

        await registry.register_subscription(KEY)
        assert not registry.registered(KEY)

        hook_source.error = None
        await registry.register_subscription(KEY)
        assert registry.registered(KEY)

    @pytest.mark.asyncio
    async def test_placement_failure_raises_hook_error(
        self, registry: HookRegistry, cluster: FakeClusterClient
    ) -> None:
        cluster.add_subscription(
            make_subscription(spec={"placement": {"placementRef": {"name": "nope"}}})
        )
        with pytest.raises(HookError, match="cannot resolve hook clusters"):
            await registry.register_subscription(KEY)

    @pytest.mark.asyncio
    async def test_target_clusters_in_instances(
        self, registry: HookRegistry, cluster: FakeClusterClient
    ) -> None:
        cluster.add_subscription(
            make_subscription(spec={"placement": {"clusters": [{"name": "east"}]}})
        )
        cluster.placement_decisions[KEY] = [ClusterRef(name="unused")]

        await registry.register_subscription(KEY)
        await registry.apply_pre_hooks(KEY)

        extra_vars = cluster.applied_jobs[0]["spec"]["extra_vars"]
        assert extra_vars["target_clusters"] == ["east"]

    @pytest.mark.asyncio
    async def test_custom_suffix(
        self,
        registry: HookRegistry,
        subscription: Subscription,
        cluster: FakeClusterClient,
    ) -> None:
        del subscription
        registry.set_suffix_func(lambda sub: f"-{sub.metadata.name}")
        registry.set_suffix_func(None)

        await registry.register_subscription(KEY)
        await registry.apply_pre_hooks(KEY)

        assert cluster.applied_jobs[0]["metadata"]["name"] == "pre-podinfo"


class TestCompletion:
    """Completion checks per side."""

    @pytest.mark.asyncio
    async def test_unregistered_counts_as_complete(
        self, registry: HookRegistry
    ) -> None:
        assert await registry.is_pre_hooks_completed(KEY)
        assert await registry.is_post_hooks_completed(KEY)

    @pytest.mark.asyncio
    async def test_empty_side_counts_as_complete(
        self,
        registry: HookRegistry,
        subscription: Subscription,
        hook_source: FakeHookSource,
    ) -> None:
        del subscription
        hook_source.templates = HookTemplates(pre=[hook_job("pre")])
        await registry.register_subscription(KEY)

        assert not registry.has_hooks(HookType.POST, KEY)
        assert await registry.is_post_hooks_completed(KEY)
        assert not await registry.is_pre_hooks_completed(KEY)

        await registry.apply_post_hooks(KEY)
        assert await registry.is_post_hooks_completed(KEY)

    @pytest.mark.asyncio
    async def test_sides_complete_independently(
        self,
        registry: HookRegistry,
        subscription: Subscription,
        cluster: FakeClusterClient,
    ) -> None:
        del subscription
        await registry.register_subscription(KEY)
        await registry.apply_pre_hooks(KEY)
        cluster.complete_all_jobs()

        assert await registry.is_pre_hooks_completed(KEY)
        assert not await registry.is_post_hooks_completed(KEY)

        await registry.apply_post_hooks(KEY)
        cluster.complete_all_jobs()
        assert await registry.is_post_hooks_completed(KEY)


class TestStatus:
    """Hook history written to subscription status."""

    @pytest.mark.asyncio
    async def test_append_status(
        self, registry: HookRegistry, subscription: Subscription
    ) -> None:
        await registry.register_subscription(KEY)
        await registry.apply_pre_hooks(KEY)

        status = registry.append_status_to_subscription(subscription)

        assert status is not subscription.status
        assert status.hook_jobs is not None
        assert status.hook_jobs.last_prehook_job == "default/pre-1-100"
        assert status.hook_jobs.prehook_jobs_history == ["default/pre-1-100"]
        assert status.hook_jobs.last_posthook_job == ""
        assert subscription.status.hook_jobs is None

    def test_unregistered_status_unchanged(
        self, registry: HookRegistry, subscription: Subscription
    ) -> None:
        status = registry.append_status_to_subscription(subscription)
        assert status == subscription.status

    @pytest.mark.asyncio
    async def test_deregister(
        self, registry: HookRegistry, subscription: Subscription
    ) -> None:
        del subscription
        await registry.register_subscription(KEY)
        await registry.deregister_subscription(KEY)
        assert not registry.registered(KEY)
        assert registry.get_last_applied_instance(KEY) == AppliedInstance()
