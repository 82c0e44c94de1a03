"""Resolve the clusters a subscription's hook jobs target."""

from __future__ import annotations

import typing as typ

from appsub.constants import APPS_API_VERSION, PLACEMENT_RULE_KIND
from appsub.errors import PlacementError
from appsub.logging import get_logger, log_info
from appsub.models import SubscriptionKey

if typ.TYPE_CHECKING:
    from appsub.models import ObjectReference, Subscription
    from appsub.ports import ClusterClient

logger = get_logger(__name__)

__all__ = ["PlacementResolver"]


def _is_supported_reference(ref: ObjectReference) -> bool:
    if ref.kind and ref.kind != PLACEMENT_RULE_KIND:
        return False
    return not (ref.api_version and ref.api_version != APPS_API_VERSION)


class PlacementResolver:
    """Look up target clusters from a subscription's placement.

    A placement reference takes priority over explicit cluster names, which
    take priority over a cluster label selector. Local placements target no
    remote clusters.
    """

    def __init__(self, cluster: ClusterClient) -> None:
        """Initialise with the client used for placement lookups."""
        self._cluster = cluster

    async def target_clusters(self, subscription: Subscription) -> list[str]:
        """Return the names of the clusters ``subscription`` is placed on.

        Raises
        ------
        PlacementError
            If the referenced placement rule does not exist.

        """
        placement = subscription.spec.placement
        if placement is None or placement.local:
            return []

        if placement.placement_ref is not None:
            ref = placement.placement_ref
            if not _is_supported_reference(ref):
                log_info(
                    logger,
                    "Unsupported placement reference %s %s on %s",
                    ref.kind,
                    ref.name,
                    subscription.key,
                )
                return []
            key = SubscriptionKey(subscription.metadata.namespace, ref.name)
            decisions = await self._cluster.get_placement_decisions(key)
            if decisions is None:
                raise PlacementError.rule_not_found(str(key))
            return [decision.name for decision in decisions]

        if placement.clusters:
            return [cluster.name for cluster in placement.clusters]

        if placement.cluster_selector is not None:
            clusters = await self._cluster.list_managed_clusters(
                placement.cluster_selector
            )
            return [cluster.name for cluster in clusters]

        return []
