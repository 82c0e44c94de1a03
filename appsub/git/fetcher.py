"""Repository fetch options and the fetch/resolve entry points."""

from __future__ import annotations

import dataclasses as dc
import hashlib
import typing as typ

from appsub.constants import (
    ANNOTATION_GIT_BRANCH,
    ANNOTATION_GIT_CLONE_DEPTH,
    ANNOTATION_GIT_DESIRED_COMMIT,
    ANNOTATION_GIT_TAG,
    ANNOTATION_GITHUB_BRANCH,
)
from appsub.git.connection import load_channel_connection
from appsub.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from pathlib import Path

    from appsub.git.connection import RepoConnection
    from appsub.models import Subscription, SubscriptionKey
    from appsub.ports import ClusterClient, GitTransport

logger = get_logger(__name__)

DEFAULT_CLONE_DEPTH = 1

__all__ = [
    "DEFAULT_CLONE_DEPTH",
    "CloneOptions",
    "build_clone_options",
    "clone_depth",
    "fetch",
    "load_clone_options",
    "local_git_folder",
    "resolve",
    "subscription_branch",
]


@dc.dataclass(frozen=True, slots=True)
class CloneOptions:
    """Everything the transport needs to fetch one subscription's repository.

    The ref is chosen with precedence ``commit_hash`` > ``revision_tag`` >
    ``branch``; an empty branch means the remote's default branch.
    """

    dest_dir: Path
    primary: RepoConnection
    secondary: RepoConnection | None = None
    branch: str = ""
    revision_tag: str = ""
    commit_hash: str = ""
    clone_depth: int = DEFAULT_CLONE_DEPTH

    @property
    def ref(self) -> str:
        """Return the ref to check out, honouring commit > tag > branch."""
        return self.commit_hash or self.revision_tag or self.branch

    def connections(self) -> list[RepoConnection]:
        """Return the connections to try, primary first."""
        if self.secondary is None:
            return [self.primary]
        return [self.primary, self.secondary]


def local_git_folder(work_dir: Path, key: SubscriptionKey) -> Path:
    """Return the clone directory owned by the subscription ``key``."""
    digest = hashlib.sha256(str(key).encode("utf-8")).hexdigest()[:16]
    return work_dir / digest


def clone_depth(subscription: Subscription) -> int:
    """Return the clone depth annotated on ``subscription`` (default 1)."""
    raw = subscription.annotation(ANNOTATION_GIT_CLONE_DEPTH).strip()
    if not raw:
        return DEFAULT_CLONE_DEPTH
    try:
        depth = int(raw)
    except ValueError:
        depth = 0
    if depth < 1:
        log_warning(
            logger,
            "Invalid %s annotation %r on %s; using depth %d",
            ANNOTATION_GIT_CLONE_DEPTH,
            raw,
            subscription.key,
            DEFAULT_CLONE_DEPTH,
        )
        return DEFAULT_CLONE_DEPTH
    return depth


def subscription_branch(subscription: Subscription) -> str:
    """Return the branch annotated on ``subscription``, if any."""
    return subscription.annotation(ANNOTATION_GITHUB_BRANCH) or subscription.annotation(
        ANNOTATION_GIT_BRANCH
    )


def build_clone_options(
    subscription: Subscription,
    *,
    work_dir: Path,
    primary: RepoConnection,
    secondary: RepoConnection | None = None,
) -> CloneOptions:
    """Assemble clone options from the subscription's Git annotations."""
    return CloneOptions(
        dest_dir=local_git_folder(work_dir, subscription.key),
        primary=primary,
        secondary=secondary,
        branch=subscription_branch(subscription),
        revision_tag=subscription.annotation(ANNOTATION_GIT_TAG),
        commit_hash=subscription.annotation(ANNOTATION_GIT_DESIRED_COMMIT),
        clone_depth=clone_depth(subscription),
    )


def fetch(options: CloneOptions, transport: GitTransport) -> str:
    """Clone the repository described by ``options`` and return the commit id.

    Errors raised by the transport propagate unchanged.
    """
    return transport.clone(options)


def resolve(options: CloneOptions, transport: GitTransport) -> str:
    """Return the commit the configured ref points at without cloning."""
    if options.commit_hash:
        return options.commit_hash
    return transport.resolve(options)


async def load_clone_options(
    subscription: Subscription, cluster: ClusterClient, *, work_dir: Path
) -> CloneOptions:
    """Build clone options from the subscription's channels as stored in the cluster.

    Raises
    ------
    GitFetchError
        If a referenced channel is missing or not Git-typed.
    ConnectionConfigError
        If a channel secret cannot form a usable connection.

    """
    primary = await load_channel_connection(cluster, subscription.channel_key)
    secondary = None
    secondary_key = subscription.secondary_channel_key
    if secondary_key is not None:
        secondary = await load_channel_connection(cluster, secondary_key)
    return build_clone_options(
        subscription, work_dir=work_dir, primary=primary, secondary=secondary
    )
