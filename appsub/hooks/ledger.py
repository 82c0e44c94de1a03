"""Ordered record of hook job instances generated for one subscription side.

Entries are only ever appended. Each entry pairs a generated job instance
with the template it came from; at most one entry per template is waiting
to be applied at any time.
"""

from __future__ import annotations

import copy
import dataclasses as dc
import typing as typ

from appsub.constants import HOOK_HISTORY_LIMIT, HOOK_JOB_SUCCESS
from appsub.hooks.templates import override_template
from appsub.logging import get_logger, log_debug, log_info
from appsub.models import SubscriptionKey

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from appsub.models import Subscription
    from appsub.ports import ClusterClient

logger = get_logger(__name__)

SuffixFunc = typ.Callable[["Subscription"], str]

__all__ = [
    "JobEntry",
    "JobInstances",
    "SuffixFunc",
    "default_suffix",
    "is_job_successful",
]


def default_suffix(subscription: Subscription) -> str:
    """Return ``-<generation>-<resourceVersion>`` for job instance names."""
    metadata = subscription.metadata
    return f"-{metadata.generation}-{metadata.resource_version}"


def is_job_successful(job: cabc.Mapping[str, typ.Any] | None) -> bool:
    """Return True when the job reports a successful run."""
    if job is None:
        return False
    result = (job.get("status") or {}).get("ansibleJobResult") or {}
    return str(result.get("status", "")).lower() == HOOK_JOB_SUCCESS


def _template_identity(template: cabc.Mapping[str, typ.Any]) -> str:
    metadata = template.get("metadata") or {}
    return f"{metadata.get('namespace', '')}/{metadata.get('name', '')}"


@dc.dataclass(slots=True)
class JobEntry:
    """A generated job instance and the template it was generated from."""

    template: str
    instance: dict[str, typ.Any]
    applied: bool = False

    @property
    def key(self) -> SubscriptionKey:
        """Return the namespaced name of the generated instance."""
        metadata = self.instance["metadata"]
        return SubscriptionKey(metadata.get("namespace", ""), metadata["name"])


@dc.dataclass(slots=True)
class JobInstances:
    """Append-only ledger of job instances for one hook side."""

    entries: list[JobEntry] = dc.field(default_factory=list)
    history_limit: int = HOOK_HISTORY_LIMIT

    def __len__(self) -> int:
        """Return the number of tracked entries."""
        return len(self.entries)

    def _pending_for(self, template: str) -> JobEntry | None:
        for entry in self.entries:
            if entry.template == template and not entry.applied:
                return entry
        return None

    def register_jobs(
        self,
        subscription: Subscription,
        suffix_fn: SuffixFunc,
        templates: cabc.Iterable[cabc.Mapping[str, typ.Any]],
        *,
        target_clusters: list[str] | None = None,
    ) -> None:
        """Generate an instance per template and record it.

        A template that already has a pending instance has that instance
        refreshed in place rather than gaining a second pending entry.
        Regenerating an instance name already recorded is a no-op.
        """
        suffix = suffix_fn(subscription)
        known = {str(entry.key) for entry in self.entries}
        for template in templates:
            instance = override_template(
                subscription, template, target_clusters=target_clusters
            )
            instance["metadata"]["name"] = f"{instance['metadata']['name']}{suffix}"
            identity = _template_identity(template)
            entry = JobEntry(template=identity, instance=instance)
            if str(entry.key) in known:
                log_debug(logger, "Hook instance %s already registered", entry.key)
                continue

            pending = self._pending_for(identity)
            if pending is not None:
                pending.instance = instance
            else:
                self.entries.append(entry)
            known.add(str(entry.key))

    async def apply_jobs(self, cluster: ClusterClient) -> list[SubscriptionKey]:
        """Submit every pending instance in order and return their keys."""
        applied: list[SubscriptionKey] = []
        for entry in self.entries:
            if entry.applied:
                continue
            existing = await cluster.get_job(entry.key)
            if existing is None:
                await cluster.apply_job(copy.deepcopy(entry.instance))
                log_info(logger, "Applied hook job %s", entry.key)
            entry.applied = True
            applied.append(entry.key)
        return applied

    def _latest_per_template(self) -> list[JobEntry]:
        latest: dict[str, JobEntry] = {}
        for entry in self.entries:
            latest[entry.template] = entry
        return list(latest.values())

    async def is_completed(self, cluster: ClusterClient) -> bool:
        """Return True when every template's latest instance has succeeded."""
        for entry in self._latest_per_template():
            if not entry.applied:
                return False
            if not is_job_successful(await cluster.get_job(entry.key)):
                return False
        return True

    @property
    def last_applied(self) -> str:
        """Return ``namespace/name`` of the most recently applied instance."""
        for entry in reversed(self.entries):
            if entry.applied:
                return str(entry.key)
        return ""

    @property
    def history(self) -> list[str]:
        """Return applied instances, oldest first, bounded to the history limit."""
        applied = [str(entry.key) for entry in self.entries if entry.applied]
        return applied[-self.history_limit :]
