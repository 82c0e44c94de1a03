"""Package filter checks for individual manifests."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from appsub.models import LabelSelector, LabelSelectorRequirement, Subscription

__all__ = [
    "filter_rejection",
    "matches_annotations",
    "matches_label_selector",
]


def _requirement_matches(
    requirement: LabelSelectorRequirement, labels: cabc.Mapping[str, str]
) -> bool:
    present = requirement.key in labels
    match requirement.operator:
        case "In":
            return present and labels[requirement.key] in requirement.values
        case "NotIn":
            return not present or labels[requirement.key] not in requirement.values
        case "Exists":
            return present
        case "DoesNotExist":
            return not present
    return False


def matches_label_selector(
    selector: LabelSelector | None, labels: cabc.Mapping[str, str]
) -> bool:
    """Return True when ``labels`` satisfy ``selector``.

    A missing or empty selector matches everything.
    """
    if selector is None:
        return True
    for key, value in selector.match_labels.items():
        if labels.get(key) != value:
            return False
    return all(
        _requirement_matches(requirement, labels)
        for requirement in selector.match_expressions
    )


def matches_annotations(
    required: cabc.Mapping[str, str] | None, annotations: cabc.Mapping[str, str]
) -> bool:
    """Return True when every required annotation is present with its value."""
    if not required:
        return True
    return all(annotations.get(key) == value for key, value in required.items())


def filter_rejection(
    subscription: Subscription, resource: dict[str, typ.Any]
) -> str | None:
    """Return why ``resource`` fails the subscription's filters, or ``None``.

    The package name is compared first, so a name mismatch rejects the
    resource whatever its labels and annotations.
    """
    metadata = resource.get("metadata") or {}
    name = str(metadata.get("name", ""))
    package = subscription.spec.package
    if package and package != name:
        return f"name {name} does not match package {package}"

    package_filter = subscription.spec.package_filter
    if package_filter is None:
        return None

    labels = metadata.get("labels") or {}
    if not matches_label_selector(package_filter.label_selector, labels):
        return f"labels of {name} do not match the package filter"

    annotations = metadata.get("annotations") or {}
    if not matches_annotations(package_filter.annotations, annotations):
        return f"annotations of {name} do not match the package filter"
    return None
