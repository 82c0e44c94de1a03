"""Helm chart index synthesis and HelmRelease manifests.

Chart roots found in the repository are summarized into an in-memory index
keyed by chart name. Each indexed chart becomes one ``HelmRelease`` custom
resource that the apply engine deploys after every plain manifest.
"""

from __future__ import annotations

import typing as typ

import msgspec
from ruamel.yaml.error import YAMLError

from appsub.constants import (
    ANNOTATION_CLUSTER_ADMIN,
    APPS_API_VERSION,
    CHART_FILE,
    HELM_RELEASE_KIND,
)
from appsub.errors import ClassificationError
from appsub.ports import GroupVersionKind, ResourceUnit
from appsub.resources.documents import load_document

if typ.TYPE_CHECKING:
    from pathlib import Path

    from appsub.git.fetcher import CloneOptions
    from appsub.models import Subscription

_MAX_RELEASE_NAME = 52

__all__ = [
    "ChartVersion",
    "HelmIndex",
    "build_index",
    "helm_release_units",
]


class ChartVersion(msgspec.Struct, kw_only=True, frozen=True):
    """One chart found in the repository."""

    name: str
    version: str
    chart_path: str
    app_version: str = ""
    description: str = ""


class HelmIndex(msgspec.Struct, kw_only=True):
    """Charts grouped by name, in discovery order."""

    entries: dict[str, list[ChartVersion]] = msgspec.field(default_factory=dict)

    def add(self, chart: ChartVersion) -> None:
        """Append ``chart`` under its name."""
        self.entries.setdefault(chart.name, []).append(chart)

    def __len__(self) -> int:
        """Return the number of distinct chart names."""
        return len(self.entries)


def _read_chart(repo_root: Path, chart_dir: Path) -> ChartVersion:
    chart_file = chart_dir / CHART_FILE
    try:
        metadata = load_document(chart_file.read_text(encoding="utf-8"))
    except (OSError, YAMLError) as exc:
        raise ClassificationError.index_failed(f"{chart_file}: {exc}") from exc

    if metadata is None or not metadata.get("name"):
        raise ClassificationError.index_failed(f"{chart_file}: chart has no name")

    return ChartVersion(
        name=str(metadata["name"]),
        version=str(metadata.get("version", "")),
        chart_path=chart_dir.relative_to(repo_root).as_posix(),
        app_version=str(metadata.get("appVersion", "")),
        description=str(metadata.get("description", "")),
    )


def build_index(
    repo_root: Path,
    chart_dirs: typ.Sequence[Path],
    *,
    package_name: str = "",
    version: str = "",
) -> HelmIndex:
    """Index the charts under ``chart_dirs``.

    When ``package_name`` is set only the chart of that name is kept; when
    ``version`` is set only charts whose version equals it are kept.

    Raises
    ------
    ClassificationError
        If a ``Chart.yaml`` cannot be read or names no chart.

    """
    index = HelmIndex()
    for chart_dir in chart_dirs:
        chart = _read_chart(repo_root, chart_dir)
        if package_name and chart.name != package_name:
            continue
        if version and chart.version != version:
            continue
        index.add(chart)
    return index


def _release_name(chart_name: str, subscription: Subscription) -> str:
    name = f"{chart_name}-{subscription.metadata.name}".lower()
    return name[:_MAX_RELEASE_NAME].rstrip("-")


def _git_source(options: CloneOptions, chart: ChartVersion) -> dict[str, typ.Any]:
    urls = [connection.url for connection in options.connections()]
    source: dict[str, typ.Any] = {"urls": urls, "chartPath": chart.chart_path}
    if options.branch:
        source["branch"] = options.branch
    if options.revision_tag:
        source["tag"] = options.revision_tag
    if options.commit_hash:
        source["commit"] = options.commit_hash
    return source


def helm_release_units(
    index: HelmIndex,
    subscription: Subscription,
    options: CloneOptions,
) -> list[ResourceUnit]:
    """Return one ``HelmRelease`` unit per indexed chart name.

    When several chart roots share a name the last one discovered is
    deployed.
    """
    gvk = GroupVersionKind.from_api_version(APPS_API_VERSION, HELM_RELEASE_KIND)
    units: list[ResourceUnit] = []
    for chart_name, versions in index.entries.items():
        chart = versions[-1]
        annotations: dict[str, str] = {}
        if subscription.is_cluster_admin:
            annotations[ANNOTATION_CLUSTER_ADMIN] = "true"
        release = {
            "apiVersion": APPS_API_VERSION,
            "kind": HELM_RELEASE_KIND,
            "metadata": {
                "name": _release_name(chart_name, subscription),
                "namespace": subscription.metadata.namespace,
                "annotations": annotations,
            },
            "repo": {
                "chartName": chart_name,
                "version": chart.version,
                "source": {"type": "git", "git": _git_source(options, chart)},
            },
        }
        units.append(ResourceUnit(resource=release, gvk=gvk))
    return units
