"""Registry of pre and post deployment hooks keyed by subscription.

The registry discovers hook job templates when a subscription is
registered, submits generated job instances on request and answers whether
those instances have finished successfully. The sync loop consults it to
gate deployment on pre-hooks and to trigger post-hooks after a successful
apply.
"""

from __future__ import annotations

import asyncio
import collections
import dataclasses as dc
import enum
import typing as typ

import msgspec

from appsub.errors import AppSubError, HookError, PlacementError
from appsub.hooks.ledger import JobInstances, default_suffix
from appsub.hooks.placement import PlacementResolver
from appsub.logging import get_logger, log_debug, log_exception, log_info
from appsub.models import HookJobsStatus

if typ.TYPE_CHECKING:
    from appsub.hooks.ledger import SuffixFunc
    from appsub.hooks.source import HookSource
    from appsub.models import Subscription, SubscriptionKey, SubscriptionStatus
    from appsub.ports import ClusterClient

logger = get_logger(__name__)

__all__ = ["AppliedInstance", "HookRegistry", "HookType", "Hooks"]


class HookType(enum.StrEnum):
    """Which side of a deployment a hook runs on."""

    PRE = "pre"
    POST = "post"


@dc.dataclass(slots=True)
class Hooks:
    """Hook ledgers for one subscription and the object they were built from."""

    last_sub: Subscription
    pre: JobInstances = dc.field(default_factory=JobInstances)
    post: JobInstances = dc.field(default_factory=JobInstances)

    def side(self, hook_type: HookType) -> JobInstances:
        """Return the ledger for ``hook_type``."""
        return self.pre if hook_type is HookType.PRE else self.post


@dc.dataclass(frozen=True, slots=True)
class AppliedInstance:
    """Names of the most recently applied pre and post hook instances."""

    pre: str = ""
    post: str = ""


class HookRegistry:
    """Track hook jobs for every subscription with Git hooks.

    Operations on one subscription are serialised by a per-key lock; calls
    for different subscriptions proceed independently.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        source: HookSource,
        placement: PlacementResolver | None = None,
        *,
        suffix_fn: SuffixFunc = default_suffix,
    ) -> None:
        """Initialise with the cluster client and template source."""
        self._cluster = cluster
        self._source = source
        self._placement = placement or PlacementResolver(cluster)
        self._suffix_fn = suffix_fn
        self._registry: dict[SubscriptionKey, Hooks] = {}
        self._locks: collections.defaultdict[SubscriptionKey, asyncio.Lock] = (
            collections.defaultdict(asyncio.Lock)
        )

    def set_suffix_func(self, suffix_fn: SuffixFunc | None) -> None:
        """Replace the function naming generated job instances."""
        if suffix_fn is None:
            return
        self._suffix_fn = suffix_fn

    def registered(self, key: SubscriptionKey) -> bool:
        """Return True when ``key`` has an entry in the registry."""
        return key in self._registry

    async def register_subscription(self, key: SubscriptionKey) -> None:
        """Discover and record hooks for the subscription ``key``.

        Missing subscriptions, missing or non-Git channels and subscriptions
        whose generation is unchanged since the last registration are left
        alone. A new generation replaces the previous hooks entirely.

        Raises
        ------
        HookError
            If target clusters for the hook jobs cannot be resolved.

        """
        async with self._locks[key]:
            subscription = await self._cluster.get_subscription(key)
            if subscription is None:
                log_debug(logger, "Subscription %s gone; not registering hooks", key)
                return

            channel = await self._cluster.get_channel(subscription.channel_key)
            if channel is None or not channel.is_git:
                return

            existing = self._registry.get(key)
            generation = subscription.metadata.generation
            if existing is not None and existing.last_sub.metadata.generation == (
                generation
            ):
                return

            try:
                templates = await self._source.load(subscription)
            except AppSubError as exc:
                log_exception(
                    logger, f"Failed to download hooks for {key}: {exc}", exc
                )
                return

            target_clusters: list[str] = []
            if templates.pre or templates.post:
                try:
                    target_clusters = await self._placement.target_clusters(
                        subscription
                    )
                except PlacementError as exc:
                    message = f"cannot resolve hook clusters for {key}: {exc}"
                    raise HookError(message) from exc

            hooks = Hooks(last_sub=subscription)
            hooks.pre.register_jobs(
                subscription,
                self._suffix_fn,
                templates.pre,
                target_clusters=target_clusters,
            )
            hooks.post.register_jobs(
                subscription,
                self._suffix_fn,
                templates.post,
                target_clusters=target_clusters,
            )
            self._registry[key] = hooks
            log_info(
                logger,
                "Registered %d pre and %d post hooks for %s at generation %d",
                len(hooks.pre),
                len(hooks.post),
                key,
                generation,
            )

    async def deregister_subscription(self, key: SubscriptionKey) -> None:
        """Forget every hook recorded for ``key``."""
        async with self._locks[key]:
            self._registry.pop(key, None)
        self._locks.pop(key, None)

    def has_hooks(self, hook_type: HookType, key: SubscriptionKey) -> bool:
        """Return True when ``key`` has at least one hook of ``hook_type``."""
        hooks = self._registry.get(key)
        if hooks is None:
            return False
        return len(hooks.side(hook_type)) > 0

    async def _apply(self, hook_type: HookType, key: SubscriptionKey) -> None:
        async with self._locks[key]:
            hooks = self._registry.get(key)
            if hooks is None:
                return
            applied = await hooks.side(hook_type).apply_jobs(self._cluster)
            if applied:
                log_info(
                    logger,
                    "Submitted %d %s-hook jobs for %s",
                    len(applied),
                    hook_type,
                    key,
                )

    async def apply_pre_hooks(self, key: SubscriptionKey) -> None:
        """Submit pending pre-hook jobs for ``key``."""
        await self._apply(HookType.PRE, key)

    async def apply_post_hooks(self, key: SubscriptionKey) -> None:
        """Submit pending post-hook jobs for ``key``."""
        await self._apply(HookType.POST, key)

    async def _is_completed(self, hook_type: HookType, key: SubscriptionKey) -> bool:
        async with self._locks[key]:
            hooks = self._registry.get(key)
            if hooks is None:
                return True
            side = hooks.side(hook_type)
            if len(side) == 0:
                return True
            return await side.is_completed(self._cluster)

    async def is_pre_hooks_completed(self, key: SubscriptionKey) -> bool:
        """Return True when every pre-hook job for ``key`` has succeeded."""
        return await self._is_completed(HookType.PRE, key)

    async def is_post_hooks_completed(self, key: SubscriptionKey) -> bool:
        """Return True when every post-hook job for ``key`` has succeeded."""
        return await self._is_completed(HookType.POST, key)

    def get_last_applied_instance(self, key: SubscriptionKey) -> AppliedInstance:
        """Return the most recently applied instance names for ``key``."""
        hooks = self._registry.get(key)
        if hooks is None:
            return AppliedInstance()
        return AppliedInstance(
            pre=hooks.pre.last_applied, post=hooks.post.last_applied
        )

    def append_status_to_subscription(
        self, subscription: Subscription
    ) -> SubscriptionStatus:
        """Return a copy of the subscription's status with hook job details.

        Subscriptions without registered hooks get their status back
        unchanged.
        """
        status = subscription.status
        hooks = self._registry.get(subscription.key)
        if hooks is None or (len(hooks.pre) == 0 and len(hooks.post) == 0):
            return msgspec.structs.replace(status)
        return msgspec.structs.replace(
            status,
            hook_jobs=HookJobsStatus(
                last_prehook_job=hooks.pre.last_applied,
                prehook_jobs_history=hooks.pre.history,
                last_posthook_job=hooks.post.last_applied,
                posthook_jobs_history=hooks.post.history,
            ),
        )
