"""Ports connecting the reconciler to the cluster, Git and the apply engine.

This module defines the interfaces (in hexagonal architecture terms) the
sync loop and hook registry depend on. Adapters implement these protocols
against a live cluster; tests use the in-memory fakes in
``tests.helpers.fakes``.

Cluster lookups return ``None`` for objects that do not exist so that
"not found" is an ordinary outcome rather than an exception.

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    from pathlib import Path

    from appsub.git.fetcher import CloneOptions
    from appsub.models import (
        Channel,
        ClusterRef,
        ConfigMap,
        LabelSelector,
        ResourceRule,
        Secret,
        Subscription,
        SubscriptionKey,
    )

__all__ = [
    "ApplyEngine",
    "ClusterClient",
    "GitTransport",
    "GroupVersionKind",
    "KustomizeBuilder",
    "ResourceUnit",
]


@dc.dataclass(frozen=True, slots=True)
class GroupVersionKind:
    """API group, version and kind of a manifest."""

    group: str
    version: str
    kind: str

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> GroupVersionKind:
        """Split ``group/version`` (or a core ``version``) into its parts."""
        group, sep, version = api_version.rpartition("/")
        if not sep:
            return cls("", api_version, kind)
        return cls(group, version, kind)

    @property
    def api_version(self) -> str:
        """Return the ``group/version`` string."""
        return f"{self.group}/{self.version}" if self.group else self.version


@dc.dataclass(slots=True)
class ResourceUnit:
    """A transformed manifest ready to hand to the apply engine."""

    resource: dict[str, typ.Any]
    gvk: GroupVersionKind

    @property
    def name(self) -> str:
        """Return ``metadata.name`` of the wrapped manifest."""
        return str(self.resource.get("metadata", {}).get("name", ""))

    @property
    def namespace(self) -> str:
        """Return ``metadata.namespace`` of the wrapped manifest."""
        return str(self.resource.get("metadata", {}).get("namespace", ""))


@typ.runtime_checkable
class ApplyEngine(typ.Protocol):
    """Downstream engine that applies a subscription's resource set."""

    async def process_sub_resources(  # noqa: PLR0913
        self,
        subscription: Subscription,
        resources: list[ResourceUnit],
        *,
        allowed: list[ResourceRule] | None,
        denied: list[ResourceRule] | None,
        cluster_admin: bool,
        dry_run: bool = False,
    ) -> None:
        """Apply ``resources`` on behalf of ``subscription``.

        Raises
        ------
        ApplyError
            If the engine rejects the resource set.

        """
        ...

    def is_resource_namespaced(self, resource: dict[str, typ.Any]) -> bool:
        """Return True when the manifest's kind is namespace-scoped."""
        ...

    async def update_appsub_overall_status(
        self,
        subscription: Subscription,
        *,
        has_error: bool,
        message: str,
    ) -> None:
        """Record the overall deployment status of ``subscription``."""
        ...


@typ.runtime_checkable
class ClusterClient(typ.Protocol):
    """Reads and writes the cluster objects the reconciler depends on."""

    async def get_subscription(self, key: SubscriptionKey) -> Subscription | None:
        """Return the subscription, or ``None`` when it does not exist."""
        ...

    async def get_channel(self, key: SubscriptionKey) -> Channel | None:
        """Return the channel, or ``None`` when it does not exist."""
        ...

    async def get_secret(self, key: SubscriptionKey) -> Secret | None:
        """Return the secret, or ``None`` when it does not exist."""
        ...

    async def get_config_map(self, key: SubscriptionKey) -> ConfigMap | None:
        """Return the config map, or ``None`` when it does not exist."""
        ...

    async def update_subscription_status(self, subscription: Subscription) -> None:
        """Persist ``subscription.status`` to the cluster."""
        ...

    async def apply_job(self, job: dict[str, typ.Any]) -> None:
        """Create the hook job described by ``job``."""
        ...

    async def get_job(self, key: SubscriptionKey) -> dict[str, typ.Any] | None:
        """Return the hook job, or ``None`` when it does not exist."""
        ...

    async def get_placement_decisions(
        self, key: SubscriptionKey
    ) -> list[ClusterRef] | None:
        """Return the decisions of a placement rule, or ``None`` if missing."""
        ...

    async def list_managed_clusters(
        self, selector: LabelSelector
    ) -> list[ClusterRef]:
        """Return managed clusters whose labels match ``selector``."""
        ...


class GitTransport(typ.Protocol):
    """Low-level Git operations used by the repository fetcher."""

    def clone(self, options: CloneOptions) -> str:
        """Clone the configured ref into ``options.dest_dir``; return its commit."""
        ...

    def resolve(self, options: CloneOptions) -> str:
        """Return the commit the configured ref points at, without cloning."""
        ...


class KustomizeBuilder(typ.Protocol):
    """Renders a kustomization directory to multi-document YAML."""

    def __call__(self, directory: Path) -> str:
        """Return the rendered YAML for ``directory``."""
        ...
