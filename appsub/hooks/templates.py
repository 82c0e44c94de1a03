"""Turn a hook job template from Git into an instance owned by a subscription."""

from __future__ import annotations

import copy
import typing as typ

from appsub.constants import ANNOTATION_HOSTING_SUBSCRIPTION

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from appsub.models import Subscription

TOWER_AUTH_SECRET_FIELD = "tower_auth_secret"  # noqa: S105 - field name
EXTRA_VARS_FIELD = "extra_vars"
TARGET_CLUSTERS_VAR = "target_clusters"

__all__ = ["owner_reference", "override_template"]


def owner_reference(subscription: Subscription) -> dict[str, typ.Any]:
    """Return a controller owner reference pointing at ``subscription``."""
    return {
        "apiVersion": subscription.api_version,
        "kind": subscription.kind,
        "name": subscription.metadata.name,
        "uid": subscription.metadata.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


def override_template(
    subscription: Subscription,
    template: cabc.Mapping[str, typ.Any],
    *,
    target_clusters: list[str] | None = None,
) -> dict[str, typ.Any]:
    """Return a deployable copy of ``template`` for ``subscription``.

    Server-assigned identity and status are cleared, the tower secret comes
    from the subscription's ``hookSecretRef``, ``target_clusters`` is added
    to the job's extra vars when clusters were resolved, and the job is
    placed in the subscription's namespace, owned by it and annotated with
    its hosting subscription.
    """
    job = copy.deepcopy(dict(template))
    job.pop("status", None)

    metadata = job.get("metadata") or {}
    for field in ("resourceVersion", "uid", "creationTimestamp", "generation"):
        metadata.pop(field, None)
    metadata["namespace"] = subscription.metadata.namespace
    metadata["ownerReferences"] = [owner_reference(subscription)]
    annotations = metadata.get("annotations") or {}
    annotations[ANNOTATION_HOSTING_SUBSCRIPTION] = str(subscription.key)
    metadata["annotations"] = annotations
    job["metadata"] = metadata

    spec = job.get("spec") or {}
    if subscription.spec.hook_secret_ref is not None:
        spec[TOWER_AUTH_SECRET_FIELD] = subscription.spec.hook_secret_ref.name
    if target_clusters:
        extra_vars = spec.get(EXTRA_VARS_FIELD) or {}
        extra_vars[TARGET_CLUSTERS_VAR] = list(target_clusters)
        spec[EXTRA_VARS_FIELD] = extra_vars
    job["spec"] = spec
    return job
