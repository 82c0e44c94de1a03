"""Resolve which repository directory a subscription deploys from."""

from __future__ import annotations

import typing as typ

from appsub.constants import (
    ANNOTATION_GIT_PATH,
    ANNOTATION_GITHUB_PATH,
    FILTER_CONFIG_PATH,
)
from appsub.logging import get_logger, log_warning
from appsub.models import SubscriptionKey

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from appsub.models import ConfigMap, Subscription
    from appsub.ports import ClusterClient

    PathResolver = cabc.Callable[[Subscription, ConfigMap | None], str]

logger = get_logger(__name__)

__all__ = [
    "PATH_RESOLVERS",
    "load_filter_config",
    "resource_path",
    "resource_subpath",
]


def _annotation(name: str) -> PathResolver:
    def resolve(subscription: Subscription, filter_config: ConfigMap | None) -> str:
        del filter_config
        return subscription.annotation(name)

    return resolve


def _filter_config_path(
    subscription: Subscription, filter_config: ConfigMap | None
) -> str:
    del subscription
    if filter_config is None:
        return ""
    return filter_config.data.get(FILTER_CONFIG_PATH, "")


# Highest priority first.
PATH_RESOLVERS: tuple[PathResolver, ...] = (
    _annotation(ANNOTATION_GITHUB_PATH),
    _annotation(ANNOTATION_GIT_PATH),
    _filter_config_path,
)


def resource_subpath(
    subscription: Subscription,
    filter_config: ConfigMap | None,
    resolvers: cabc.Sequence[PathResolver] = PATH_RESOLVERS,
) -> str:
    """Return the repository-relative resource directory.

    ``resolvers`` are tried in order and the first non-empty answer wins. By
    default the ``github-path`` annotation beats ``git-path``, which beats
    the ``path`` field of the package filter's config map. An empty result
    means the repository root.
    """
    for resolver in resolvers:
        value = resolver(subscription, filter_config).strip().strip("/")
        if value:
            return value
    return ""


def resource_path(
    repo_root: Path, subscription: Subscription, filter_config: ConfigMap | None
) -> Path:
    """Return the absolute resource directory inside ``repo_root``."""
    subpath = resource_subpath(subscription, filter_config)
    return repo_root / subpath if subpath else repo_root


async def load_filter_config(
    subscription: Subscription, cluster: ClusterClient
) -> ConfigMap | None:
    """Fetch the config map named by the package filter's ``filterRef``.

    The config map lives in the subscription's namespace. A missing config
    map is logged and treated as absent.
    """
    package_filter = subscription.spec.package_filter
    if package_filter is None or package_filter.filter_ref is None:
        return None
    key = SubscriptionKey(
        subscription.metadata.namespace, package_filter.filter_ref.name
    )
    config_map = await cluster.get_config_map(key)
    if config_map is None:
        log_warning(logger, "filterRef config map %s not found", key)
    return config_map
