"""Package overrides declared on a subscription.

Each override entry names a dotted ``path`` inside the manifest and the
``value`` to place there. Mapping values are deep-merged into whatever the
path already holds; any other value replaces it.
"""

from __future__ import annotations

import copy
import typing as typ

from appsub.errors import OverrideError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from appsub.models import PackageOverride, Subscription

__all__ = [
    "apply_overrides",
    "deep_merge",
    "overrides_for",
]


def deep_merge(
    base: cabc.MutableMapping[str, typ.Any], patch: cabc.Mapping[str, typ.Any]
) -> cabc.MutableMapping[str, typ.Any]:
    """Merge ``patch`` into ``base`` in place and return ``base``."""
    for key, value in patch.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            deep_merge(current, value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def overrides_for(
    subscription: Subscription, package_name: str
) -> list[PackageOverride]:
    """Return the override blocks that target ``package_name``."""
    return [
        override
        for override in subscription.spec.package_overrides or []
        if override.package_name == package_name
    ]


def _apply_entry(
    resource: dict[str, typ.Any], resource_name: str, entry: cabc.Mapping[str, typ.Any]
) -> None:
    path = str(entry.get("path") or "").strip(".")
    if not path:
        raise OverrideError.missing_path(resource_name)
    value = entry.get("value")

    *parents, leaf = path.split(".")
    target: typ.Any = resource
    for segment in parents:
        if not isinstance(target, dict):
            raise OverrideError.not_a_mapping(resource_name, path)
        target = target.setdefault(segment, {})
    if not isinstance(target, dict):
        raise OverrideError.not_a_mapping(resource_name, path)

    current = target.get(leaf)
    if isinstance(current, dict) and isinstance(value, dict):
        deep_merge(current, value)
    else:
        target[leaf] = copy.deepcopy(value)


def apply_overrides(
    resource: dict[str, typ.Any], subscription: Subscription
) -> dict[str, typ.Any]:
    """Return a copy of ``resource`` with its package overrides applied.

    Raises
    ------
    OverrideError
        If an entry has no path or its path crosses a non-mapping value.

    """
    resource_name = str((resource.get("metadata") or {}).get("name", ""))
    blocks = overrides_for(subscription, resource_name)
    if not blocks:
        return resource

    overridden = copy.deepcopy(resource)
    for block in blocks:
        for entry in block.package_overrides:
            _apply_entry(overridden, resource_name, entry)
    return overridden
