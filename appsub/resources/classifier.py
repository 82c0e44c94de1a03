"""Sort a fetched repository tree into resource buckets.

Buckets are applied in a fixed order: CRDs and namespaces, RBAC, other
manifests, rendered kustomizations, then Helm releases. Chart and
kustomization roots are opaque: nothing beneath them lands in another
bucket.
"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ
from pathlib import Path

from appsub.constants import (
    CHART_FILE,
    CRD_AND_NAMESPACE_KINDS,
    KUSTOMIZATION_FILES,
    MANIFEST_SUFFIXES,
    RBAC_KINDS,
)
from appsub.errors import ClassificationError
from appsub.logging import get_logger, log_debug, log_warning
from appsub.resources.documents import split_documents, try_load_document
from appsub.resources.helm import HelmIndex, build_index

logger = get_logger(__name__)

HOOK_DIRECTORIES = frozenset({"prehook", "posthook"})

__all__ = [
    "HOOK_DIRECTORIES",
    "ClassifiedResources",
    "ManifestDocument",
    "classify",
]


@dc.dataclass(frozen=True, slots=True)
class ManifestDocument:
    """One YAML document and the file it came from."""

    source: Path
    text: str
    kind: str


@dc.dataclass(slots=True)
class ClassifiedResources:
    """Buckets produced by :func:`classify`.

    Attributes
    ----------
    chart_dirs
        Directories holding a ``Chart.yaml``.
    kustomize_dirs
        Directories holding a kustomization file.
    crds_and_namespaces, rbac, other
        Manifest documents partitioned by kind.
    helm_index
        Charts indexed from ``chart_dirs``; ``None`` when indexing failed.
    index_error
        Why the Helm index could not be built, if it could not.

    """

    chart_dirs: list[Path] = dc.field(default_factory=list)
    kustomize_dirs: list[Path] = dc.field(default_factory=list)
    crds_and_namespaces: list[ManifestDocument] = dc.field(default_factory=list)
    rbac: list[ManifestDocument] = dc.field(default_factory=list)
    other: list[ManifestDocument] = dc.field(default_factory=list)
    helm_index: HelmIndex | None = None
    index_error: str | None = None

    def manifest_buckets(self) -> list[tuple[str, list[ManifestDocument]]]:
        """Return the plain manifest buckets in apply order."""
        return [
            ("crds and namespaces", self.crds_and_namespaces),
            ("rbac", self.rbac),
            ("other", self.other),
        ]

    def clear(self) -> None:
        """Drop every bucket and the Helm index."""
        self.chart_dirs.clear()
        self.kustomize_dirs.clear()
        self.crds_and_namespaces.clear()
        self.rbac.clear()
        self.other.clear()
        self.helm_index = None
        self.index_error = None


def _has_any(directory: Path, names: typ.Iterable[str]) -> bool:
    return any((directory / name).is_file() for name in names)


def _classify_file(path: Path, result: ClassifiedResources) -> None:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        log_warning(logger, "Skipping unreadable manifest %s: %s", path, exc)
        return

    for document_text in split_documents(text):
        document = try_load_document(document_text)
        if document is None:
            log_debug(logger, "Skipping non-mapping document in %s", path)
            continue
        kind = str(document.get("kind") or "")
        if not kind or not document.get("apiVersion"):
            log_debug(logger, "Skipping document without apiVersion/kind in %s", path)
            continue

        entry = ManifestDocument(source=path, text=document_text, kind=kind)
        if kind in CRD_AND_NAMESPACE_KINDS:
            result.crds_and_namespaces.append(entry)
        elif kind in RBAC_KINDS:
            result.rbac.append(entry)
        else:
            result.other.append(entry)


def _walk(
    resource_path: Path, result: ClassifiedResources, *, skip_hooks: bool
) -> None:
    for raw_dir, dirnames, filenames in os.walk(resource_path):
        directory = Path(raw_dir)
        dirnames.sort()

        if _has_any(directory, (CHART_FILE,)):
            result.chart_dirs.append(directory)
            dirnames.clear()
            continue
        if _has_any(directory, KUSTOMIZATION_FILES):
            result.kustomize_dirs.append(directory)
            dirnames.clear()
            continue

        dirnames[:] = [
            name
            for name in dirnames
            if not name.startswith(".")
            and not (skip_hooks and name in HOOK_DIRECTORIES)
        ]
        for filename in sorted(filenames):
            path = directory / filename
            if filename.startswith(".") or path.suffix not in MANIFEST_SUFFIXES:
                continue
            _classify_file(path, result)


def classify(
    repo_root: Path,
    resource_path: Path | None = None,
    *,
    skip_hooks: bool = True,
    package_name: str = "",
    chart_version: str = "",
) -> ClassifiedResources:
    """Classify the manifests under ``resource_path``.

    Parameters
    ----------
    repo_root
        Root of the cloned repository; chart paths are recorded relative
        to it.
    resource_path
        Directory to classify; defaults to ``repo_root``.
    skip_hooks
        Skip ``prehook`` and ``posthook`` directories.
    package_name, chart_version
        Narrow the Helm index to one chart name and version.

    Returns
    -------
    ClassifiedResources
        The populated buckets. A Helm indexing failure is recorded in
        ``index_error`` rather than raised.

    Raises
    ------
    ClassificationError
        If ``resource_path`` does not exist.

    """
    path = resource_path or repo_root
    if not path.is_dir():
        raise ClassificationError.missing_path(path)

    result = ClassifiedResources()
    _walk(path, result, skip_hooks=skip_hooks)

    try:
        result.helm_index = build_index(
            repo_root,
            result.chart_dirs,
            package_name=package_name,
            version=chart_version,
        )
    except ClassificationError as exc:
        log_warning(logger, "Helm index generation failed: %s", exc)
        result.index_error = str(exc)

    return result
