"""Classification and transformation of repository manifests."""

from __future__ import annotations

from .classifier import ClassifiedResources, ManifestDocument, classify
from .helm import HelmIndex, build_index, helm_release_units
from .transformer import ManifestSource, ResourceTransformer

__all__ = [
    "ClassifiedResources",
    "HelmIndex",
    "ManifestDocument",
    "ManifestSource",
    "ResourceTransformer",
    "build_index",
    "classify",
    "helm_release_units",
]
