"""Discover hook job templates in a subscription's Git repository."""

from __future__ import annotations

import asyncio
import dataclasses as dc
import typing as typ

from ruamel.yaml.error import YAMLError

from appsub.constants import HOOK_JOB_API_VERSION, HOOK_JOB_KIND, MANIFEST_SUFFIXES
from appsub.errors import HookError
from appsub.git.fetcher import fetch, load_clone_options
from appsub.logging import get_logger, log_debug, log_exception
from appsub.resources.documents import load_document, split_documents
from appsub.sync.paths import load_filter_config, resource_path

if typ.TYPE_CHECKING:
    from pathlib import Path

    from appsub.models import Subscription
    from appsub.ports import ClusterClient, GitTransport

logger = get_logger(__name__)

PRE_HOOK_DIR = "prehook"
POST_HOOK_DIR = "posthook"
HOOKS_WORK_SUBDIR = "hooks"

__all__ = [
    "POST_HOOK_DIR",
    "PRE_HOOK_DIR",
    "GitHookSource",
    "HookSource",
    "HookTemplates",
    "discover_templates",
    "is_hook_job",
]


@dc.dataclass(slots=True)
class HookTemplates:
    """Hook job templates found for each side of a deployment."""

    pre: list[dict[str, typ.Any]] = dc.field(default_factory=list)
    post: list[dict[str, typ.Any]] = dc.field(default_factory=list)


@typ.runtime_checkable
class HookSource(typ.Protocol):
    """Supplies hook job templates for a subscription."""

    async def load(self, subscription: Subscription) -> HookTemplates:
        """Return the pre and post hook templates for ``subscription``."""
        ...


def is_hook_job(document: dict[str, typ.Any] | None) -> bool:
    """Return True when ``document`` is a hook job template."""
    if document is None:
        return False
    return (
        document.get("kind") == HOOK_JOB_KIND
        and document.get("apiVersion") == HOOK_JOB_API_VERSION
    )


def discover_templates(directory: Path, hook_type: str) -> list[dict[str, typ.Any]]:
    """Return every hook job template found in YAML files under ``directory``.

    A missing directory means no hooks. Files are read in sorted order and
    documents of any other kind are ignored.

    Raises
    ------
    HookError
        If a file cannot be read or parsed.

    """
    if not directory.is_dir():
        return []

    templates: list[dict[str, typ.Any]] = []
    for path in sorted(directory.rglob("*")):
        if not path.is_file() or path.suffix not in MANIFEST_SUFFIXES:
            continue
        try:
            text = path.read_text(encoding="utf-8")
            documents = [load_document(doc) for doc in split_documents(text)]
        except (OSError, UnicodeDecodeError, YAMLError) as exc:
            raise HookError.discovery_failed(hook_type, f"{path}: {exc}") from exc
        templates.extend(doc for doc in documents if doc and is_hook_job(doc))
    log_debug(
        logger, "Found %d %s templates in %s", len(templates), hook_type, directory
    )
    return templates


class GitHookSource:
    """Read hook templates from a dedicated clone of the subscription's repo.

    Hook templates live in ``prehook`` and ``posthook`` directories beneath
    the subscription's resource path. The clone is kept apart from the sync
    loop's clone under ``<work_dir>/hooks``.
    """

    def __init__(
        self, cluster: ClusterClient, transport: GitTransport, *, work_dir: Path
    ) -> None:
        """Initialise with the cluster client, Git transport and work dir."""
        self._cluster = cluster
        self._transport = transport
        self._work_dir = work_dir / HOOKS_WORK_SUBDIR

    async def load(self, subscription: Subscription) -> HookTemplates:
        """Clone the repository and collect both hook sides.

        Raises
        ------
        GitFetchError
            If the repository cannot be fetched.

        """
        options = await load_clone_options(
            subscription, self._cluster, work_dir=self._work_dir
        )
        await asyncio.to_thread(fetch, options, self._transport)
        filter_config = await load_filter_config(subscription, self._cluster)
        base = resource_path(options.dest_dir, subscription, filter_config)

        templates = HookTemplates()
        templates.pre = await self._discover(base / PRE_HOOK_DIR, subscription, "pre")
        templates.post = await self._discover(
            base / POST_HOOK_DIR, subscription, "post"
        )
        return templates

    @staticmethod
    async def _discover(
        directory: Path, subscription: Subscription, hook_type: str
    ) -> list[dict[str, typ.Any]]:
        try:
            return await asyncio.to_thread(discover_templates, directory, hook_type)
        except HookError as exc:
            log_exception(
                logger, f"Hook discovery failed for {subscription.key}: {exc}", exc
            )
            return []
