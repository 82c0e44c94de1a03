"""Per-subscription reconciliation loop.

A :class:`SubscriberItem` owns one background task that periodically
fetches a subscription's Git repository, turns the manifests it finds into
resource units and hands them to the apply engine.

Each tick runs these steps in order:

1. gating on the subscription's time window, pause label and webhook state;
2. for the ``medium`` tier, resolving the remote commit and skipping ticks
   whose commit has not moved (see :class:`DriftDetector`);
3. submitting pre-hook jobs and waiting for them to succeed;
4. fetching, classifying and transforming manifests in a worker thread;
5. pushing the aggregated resources and reporting subscription status;
6. submitting post-hook jobs after a successful apply.

Example:
-------
>>> item = SubscriberItem(subscription, deps)
>>> item.start()
>>> item.notify_change()
>>> await item.stop()

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import enum
import time
import typing as typ

import msgspec

from appsub.common.time import rfc3339, utcnow
from appsub.config import AppSubConfig
from appsub.constants import (
    ANNOTATION_USER_GROUP,
    ANNOTATION_USER_IDENTITY,
    ANNOTATION_WEBHOOK_ENABLED,
    LABEL_PAUSE,
)
from appsub.errors import (
    AppSubError,
    BatchAbortError,
    ClassificationError,
    EmptyResourceSetError,
    ResourceTransformError,
)
from appsub.git.fetcher import fetch, load_clone_options, resolve
from appsub.hooks.registry import HookType
from appsub.logging import get_logger, log_debug, log_exception, log_info
from appsub.models import SubscriptionPhase
from appsub.resources.classifier import ClassifiedResources, classify
from appsub.resources.documents import split_documents
from appsub.resources.helm import helm_release_units
from appsub.resources.kustomize import apply_kustomize_overrides
from appsub.resources.transformer import ManifestSource, ResourceTransformer
from appsub.sync.observability import SkipReason, SyncEventLogger
from appsub.sync.paths import load_filter_config, resource_path
from appsub.sync.schedule import DriftDetector, ReconcileRate, ReconcileSchedule
from appsub.sync.timewindow import is_blocked

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from appsub.git.fetcher import CloneOptions
    from appsub.hooks.registry import HookRegistry
    from appsub.models import ConfigMap, Subscription, SubscriptionKey
    from appsub.ports import (
        ApplyEngine,
        ClusterClient,
        GitTransport,
        KustomizeBuilder,
        ResourceUnit,
    )

logger = get_logger(__name__)

__all__ = ["PreparedResources", "SubscriberItem", "SyncDependencies", "TickOutcome"]


class TickOutcome(enum.StrEnum):
    """Result of one tick."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    HOOKS_PENDING = "hooks_pending"
    FAILED = "failed"


@dc.dataclass(slots=True)
class SyncDependencies:
    """Collaborators shared by every subscriber item.

    Attributes
    ----------
    cluster
        Reads subscriptions, channels and secrets and writes status.
    apply_engine
        Receives each tick's resource units.
    transport
        Clones repositories and resolves refs.
    kustomize
        Renders kustomize roots.
    config
        Loop periods, retry policy and work directory.
    hooks
        Hook registry consulted around each apply, if hooks are enabled.
    events
        Structured event logger.
    clock, sleep
        Time sources, replaceable in tests.

    """

    cluster: ClusterClient
    apply_engine: ApplyEngine
    transport: GitTransport
    kustomize: KustomizeBuilder
    config: AppSubConfig = dc.field(default_factory=AppSubConfig)
    hooks: HookRegistry | None = None
    events: SyncEventLogger = dc.field(default_factory=SyncEventLogger)
    clock: cabc.Callable[[], dt.datetime] = utcnow
    sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep


@dc.dataclass(slots=True)
class PreparedResources:
    """Output of the fetch, classify and transform stage of a tick."""

    commit: str
    units: list[ResourceUnit] = dc.field(default_factory=list)
    errors: list[str] = dc.field(default_factory=list)


class SubscriberItem:
    """Reconciliation state and background task for one subscription."""

    def __init__(self, subscription: Subscription, deps: SyncDependencies) -> None:
        """Initialise the item for ``subscription``; the loop is not started."""
        self.subscription = subscription
        self._deps = deps
        self.rate = ReconcileRate.of(subscription)
        self.schedule = ReconcileSchedule.for_rate(self.rate, deps.config)
        self.drift = DriftDetector(resync_every=deps.config.resync_every)
        self.last_commit = ""
        self.successful = False
        self.resources = ClassifiedResources()
        self._changed = asyncio.Event()
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def key(self) -> SubscriptionKey:
        """Return the subscription's namespaced name."""
        return self.subscription.key

    @property
    def running(self) -> bool:
        """Return True while the background task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop; starting a running item does nothing."""
        if self.running:
            return
        self.drift.reset()
        self._changed.clear()
        self._stopping.clear()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"appsub-sync-{self.key}"
        )
        log_info(logger, "Started %s sync loop for %s", self.rate, self.key)

    async def stop(self) -> None:
        """Ask the background loop to exit and wait for it to finish.

        The loop only checks for the request between ticks, so an apply or
        status update in flight completes first.
        """
        task = self._task
        if task is None:
            return
        self._stopping.set()
        self._changed.set()
        await task
        if self._task is task:
            self._task = None
        log_info(logger, "Stopped sync loop for %s", self.key)

    async def restart(self) -> None:
        """Wait for the current loop to exit, then start a fresh one."""
        await self.stop()
        self.start()

    def notify_change(self) -> None:
        """Signal that the repository changed and a tick should run now."""
        self._changed.set()

    async def _wait_for_next_tick(self) -> bool:
        """Wait for the next tick and return True when a change woke us."""
        timeout = self.schedule.loop_period_s if self.schedule.periodic else None
        try:
            await asyncio.wait_for(self._changed.wait(), timeout=timeout)
        except TimeoutError:
            return False
        self._changed.clear()
        return True

    async def _run(self) -> None:
        await self.reconcile_with_retries()
        while not self._stopping.is_set():
            notified = await self._wait_for_next_tick()
            if self._stopping.is_set():
                break
            if self.schedule.periodic:
                await self.tick(notified=notified)
            else:
                await self.reconcile_with_retries(notified=True)

    async def reconcile_with_retries(self, *, notified: bool = False) -> TickOutcome:
        """Run a tick, retrying failures up to the tier's retry count."""
        retries = self.schedule.retries
        outcome = TickOutcome.FAILED
        for attempt in range(1, retries + 2):
            outcome = await self.tick(attempt=attempt, notified=notified)
            if outcome is not TickOutcome.FAILED or self._stopping.is_set():
                return outcome
            if attempt <= retries:
                await self._deps.sleep(self.schedule.retry_interval_s)
        return outcome

    def _skip_reason(self, *, notified: bool) -> SkipReason | None:
        subscription = self.subscription
        if is_blocked(subscription.spec.timewindow, self._deps.clock()):
            return SkipReason.TIME_WINDOW
        if subscription.metadata.labels.get(LABEL_PAUSE, "").lower() == "true":
            return SkipReason.PAUSED
        webhook = subscription.annotation(ANNOTATION_WEBHOOK_ENABLED).lower() == "true"
        if webhook and self.schedule.periodic and self.successful and not notified:
            return SkipReason.WEBHOOK
        return None

    async def tick(self, *, attempt: int = 1, notified: bool = False) -> TickOutcome:
        """Apply gating and, when nothing blocks, run one reconciliation."""
        reason = self._skip_reason(notified=notified)
        if reason is not None:
            self._deps.events.log_tick_skipped(self.key, reason)
            return TickOutcome.SKIPPED
        return await self.reconcile(attempt=attempt)

    async def reconcile(self, *, attempt: int = 1) -> TickOutcome:
        """Run one reconciliation attempt and report its status."""
        events = self._deps.events
        started_at = time.monotonic()
        events.log_tick_started(self.key, attempt=attempt)
        try:
            return await self._reconcile(started_at)
        except Exception as exc:  # noqa: BLE001 - every failure becomes status
            duration = dt.timedelta(seconds=time.monotonic() - started_at)
            self.successful = False
            events.log_tick_failed(self.key, exc, duration)
            await self._report_failure(exc)
            return TickOutcome.FAILED

    async def _reconcile(self, started_at: float) -> TickOutcome:
        deps = self._deps
        subscription = self.subscription
        options = await load_clone_options(
            subscription, deps.cluster, work_dir=deps.config.work_dir
        )

        if self.rate is ReconcileRate.MEDIUM:
            commit = await asyncio.to_thread(resolve, options, deps.transport)
            if not self.drift.should_resync(
                commit, last_commit=self.last_commit, last_successful=self.successful
            ):
                deps.events.log_tick_skipped(self.key, SkipReason.UNCHANGED_COMMIT)
                return TickOutcome.SKIPPED

        if not await self._pre_hooks_completed():
            deps.events.log_tick_skipped(self.key, SkipReason.PRE_HOOKS_PENDING)
            return TickOutcome.HOOKS_PENDING

        filter_config = await load_filter_config(subscription, deps.cluster)
        prepared = await asyncio.to_thread(self._prepare, options, filter_config)

        if not prepared.units and (prepared.errors or not self.successful):
            error = EmptyResourceSetError(self._truncate(", ".join(prepared.errors)))
            await deps.apply_engine.update_appsub_overall_status(
                subscription, has_error=True, message=str(error)
            )
            raise error

        await deps.apply_engine.process_sub_resources(
            subscription,
            prepared.units,
            allowed=subscription.spec.allow,
            denied=subscription.spec.deny,
            cluster_admin=subscription.is_cluster_admin,
        )
        self.last_commit = prepared.commit
        self.successful = True

        if deps.hooks is not None and deps.hooks.has_hooks(HookType.POST, self.key):
            await deps.hooks.apply_post_hooks(self.key)

        deps.events.log_tick_completed(
            self.key,
            commit=prepared.commit,
            resources=len(prepared.units),
            duration=dt.timedelta(seconds=time.monotonic() - started_at),
        )
        await self._report(SubscriptionPhase.SUBSCRIBED, "")
        return TickOutcome.APPLIED

    async def _pre_hooks_completed(self) -> bool:
        hooks = self._deps.hooks
        if hooks is None or not hooks.has_hooks(HookType.PRE, self.key):
            return True
        await hooks.apply_pre_hooks(self.key)
        return await hooks.is_pre_hooks_completed(self.key)

    def _transformer(self) -> ResourceTransformer:
        subscription = self.subscription
        return ResourceTransformer(
            subscription=subscription,
            apply_engine=self._deps.apply_engine,
            user_identity=subscription.annotation(ANNOTATION_USER_IDENTITY),
            user_group=subscription.annotation(ANNOTATION_USER_GROUP),
        )

    def _collect(
        self,
        prepared: PreparedResources,
        transformer: ResourceTransformer,
        raw: str,
        source: ManifestSource,
    ) -> None:
        try:
            unit = transformer.transform(raw, source)
        except ResourceTransformError as exc:
            self._deps.events.log_resource_dropped(self.key, exc)
            prepared.errors.append(str(exc))
            return
        if unit is not None:
            prepared.units.append(unit)

    def _prepare(
        self, options: CloneOptions, filter_config: ConfigMap | None
    ) -> PreparedResources:
        """Fetch the repository and build the tick's ordered resource list.

        Runs in a worker thread. The classified buckets are always cleared
        before returning.
        """
        deps = self._deps
        subscription = self.subscription
        commit = fetch(options, deps.transport)
        package_filter = subscription.spec.package_filter
        self.resources = classify(
            options.dest_dir,
            resource_path(options.dest_dir, subscription, filter_config),
            skip_hooks=True,
            package_name=subscription.spec.package,
            chart_version=package_filter.version if package_filter else "",
        )
        prepared = PreparedResources(commit=commit)
        try:
            if self.resources.index_error is not None:
                raise ClassificationError(self.resources.index_error)
            self._aggregate(options, prepared)
        finally:
            self.resources.clear()
        return prepared

    def _aggregate(self, options: CloneOptions, prepared: PreparedResources) -> None:
        deps = self._deps
        classified = self.resources
        transformer = self._transformer()
        try:
            for _bucket, documents in classified.manifest_buckets():
                for document in documents:
                    self._collect(
                        prepared, transformer, document.text, ManifestSource.FILE
                    )
            for directory in classified.kustomize_dirs:
                apply_kustomize_overrides(
                    self.subscription, options.dest_dir, directory
                )
                rendered = deps.kustomize(directory)
                for raw in split_documents(rendered):
                    self._collect(
                        prepared, transformer, raw, ManifestSource.KUSTOMIZE
                    )
        except BatchAbortError as exc:
            deps.events.log_batch_aborted(self.key, exc)
            prepared.errors.append(str(exc))
            prepared.units.clear()
            return

        if classified.helm_index is not None and len(classified.helm_index):
            prepared.units.extend(
                helm_release_units(classified.helm_index, self.subscription, options)
            )

    def _truncate(self, message: str) -> str:
        return message[: self._deps.config.status_message_limit]

    async def _report(self, phase: SubscriptionPhase, message: str) -> None:
        subscription = self.subscription
        status = msgspec.structs.replace(
            subscription.status,
            phase=phase.value,
            message=message,
            last_update_time=rfc3339(self._deps.clock()),
        )
        updated = msgspec.structs.replace(subscription, status=status)
        if self._deps.hooks is not None:
            updated = msgspec.structs.replace(
                updated, status=self._deps.hooks.append_status_to_subscription(updated)
            )
        await self._deps.cluster.update_subscription_status(updated)
        self.subscription = updated

    async def _report_failure(self, exc: Exception) -> None:
        try:
            await self._report(SubscriptionPhase.FAILED, self._truncate(str(exc)))
        except AppSubError as report_exc:
            log_exception(
                logger,
                f"Failed to record status for {self.key}: {report_exc}",
                report_exc,
            )
        else:
            log_debug(logger, "Recorded failed status for %s", self.key)
