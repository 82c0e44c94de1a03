"""Per-manifest transformation from raw YAML to a deployable resource unit.

``ResourceTransformer.transform`` runs each manifest through a fixed
pipeline:

1. parse, skipping documents without ``apiVersion`` or ``kind``;
2. re-stamp labels and annotations exactly as written in the source;
3. apply the namespace policy for namespace-scoped kinds;
4. check the package name and package filter, skipping on mismatch;
5. apply package overrides;
6. propagate cluster-admin, reconcile-option and part-of metadata;
7. inject user identity into nested subscriptions.

Skips return ``None``. Failures that should drop only this manifest raise
``ResourceTransformError``.
"""

from __future__ import annotations

import copy
import dataclasses as dc
import enum
import typing as typ

from ruamel.yaml.error import YAMLError

from appsub.constants import (
    ANNOTATION_CLUSTER_ADMIN,
    ANNOTATION_CURRENT_NAMESPACE_SCOPED,
    ANNOTATION_RECONCILE_OPTION,
    ANNOTATION_USER_GROUP,
    ANNOTATION_USER_IDENTITY,
    APPS_GROUP,
    LABEL_APP,
    LABEL_PART_OF,
    MERGE_RECONCILE,
    SUBSCRIPTION_KIND,
)
from appsub.errors import ResourceTransformError
from appsub.logging import get_logger, log_debug
from appsub.ports import GroupVersionKind, ResourceUnit
from appsub.resources.documents import is_manifest, load_document, verbatim_metadata
from appsub.resources.filters import filter_rejection
from appsub.resources.overrides import apply_overrides

if typ.TYPE_CHECKING:
    from appsub.models import Subscription
    from appsub.ports import ApplyEngine

logger = get_logger(__name__)

__all__ = ["ManifestSource", "ResourceTransformer", "part_of_label"]


class ManifestSource(enum.StrEnum):
    """Where a manifest came from."""

    FILE = "file"
    KUSTOMIZE = "kustomize"


def part_of_label(subscription: Subscription) -> str:
    """Return the ``app.kubernetes.io/part-of`` value for deployed resources."""
    labels = subscription.metadata.labels
    return (
        labels.get(LABEL_PART_OF)
        or labels.get(LABEL_APP)
        or subscription.metadata.name
    )


def _is_nested_subscription(gvk: GroupVersionKind) -> bool:
    return (
        gvk.group.lower() == APPS_GROUP
        and gvk.kind.lower() == SUBSCRIPTION_KIND.lower()
    )


@dc.dataclass(slots=True)
class ResourceTransformer:
    """Turns raw manifests into resource units for one subscription.

    Attributes
    ----------
    subscription
        The subscription whose policies are applied.
    apply_engine
        Consulted to decide whether a kind is namespace-scoped.
    user_identity, user_group
        Stamped onto nested subscriptions.

    """

    subscription: Subscription
    apply_engine: ApplyEngine
    user_identity: str = ""
    user_group: str = ""

    @property
    def _cluster_admin(self) -> bool:
        return self.subscription.is_cluster_admin

    @property
    def _current_namespace_scoped(self) -> bool:
        value = self.subscription.annotation(ANNOTATION_CURRENT_NAMESPACE_SCOPED)
        return value.lower() == "true"

    def transform(
        self, raw: str, source: ManifestSource = ManifestSource.FILE
    ) -> ResourceUnit | None:
        """Transform one YAML document.

        Returns
        -------
        ResourceUnit | None
            The unit to deploy, or ``None`` when the document is skipped.

        Raises
        ------
        ResourceTransformError
            If the manifest must be dropped, such as an override failure or
            a kustomize-rendered subscription claiming cluster-admin.

        """
        try:
            resource = load_document(raw)
        except YAMLError as exc:
            log_debug(logger, "Skipping unparsable document: %s", exc)
            return None
        if not is_manifest(resource):
            log_debug(logger, "Skipping document that is not a Kubernetes resource")
            return None
        resource = copy.deepcopy(typ.cast("dict[str, typ.Any]", resource))

        if resource.get("metadata") is None:
            resource["metadata"] = {}
        metadata = resource["metadata"]
        if not isinstance(metadata, dict):
            return None
        name = str(metadata.get("name", ""))
        gvk = GroupVersionKind.from_api_version(
            str(resource["apiVersion"]), str(resource["kind"])
        )

        labels, annotations = verbatim_metadata(raw)
        if labels:
            metadata["labels"] = labels
        if annotations:
            metadata["annotations"] = annotations

        if source is ManifestSource.KUSTOMIZE and _is_nested_subscription(gvk):
            if annotations.get(ANNOTATION_CLUSTER_ADMIN, "").lower() == "true":
                raise ResourceTransformError(
                    name, f"contains {ANNOTATION_CLUSTER_ADMIN} = true annotation"
                )

        self._apply_namespace_policy(resource, gvk)

        rejection = filter_rejection(self.subscription, resource)
        if rejection is not None:
            log_debug(logger, "Skipping %s: %s", name, rejection)
            return None

        resource = apply_overrides(resource, self.subscription)

        self._propagate_metadata(resource)
        if _is_nested_subscription(gvk):
            self._inject_identity(resource)

        return ResourceUnit(resource=resource, gvk=gvk)

    def _apply_namespace_policy(
        self, resource: dict[str, typ.Any], gvk: GroupVersionKind
    ) -> None:
        if not self.apply_engine.is_resource_namespaced(resource):
            return
        metadata = resource["metadata"]
        sub_namespace = self.subscription.metadata.namespace

        if not self._cluster_admin:
            metadata["namespace"] = sub_namespace
            return

        if not metadata.get("namespace") or self._current_namespace_scoped:
            metadata["namespace"] = sub_namespace
        if _is_nested_subscription(gvk):
            annotations = metadata.get("annotations") or {}
            annotations[ANNOTATION_CLUSTER_ADMIN] = "true"
            metadata["annotations"] = annotations

    def _propagate_metadata(self, resource: dict[str, typ.Any]) -> None:
        metadata = resource["metadata"]
        annotations = metadata.get("annotations") or {}

        if self._cluster_admin:
            annotations[ANNOTATION_CLUSTER_ADMIN] = "true"
        if not annotations.get(ANNOTATION_RECONCILE_OPTION):
            annotations[ANNOTATION_RECONCILE_OPTION] = (
                self.subscription.annotation(ANNOTATION_RECONCILE_OPTION)
                or MERGE_RECONCILE
            )
        metadata["annotations"] = annotations

        labels = metadata.get("labels") or {}
        labels[LABEL_PART_OF] = part_of_label(self.subscription)
        metadata["labels"] = labels

    def _inject_identity(self, resource: dict[str, typ.Any]) -> None:
        metadata = resource["metadata"]
        annotations = metadata.get("annotations") or {}
        annotations[ANNOTATION_USER_IDENTITY] = self.user_identity
        annotations[ANNOTATION_USER_GROUP] = self.user_group
        metadata["annotations"] = annotations
