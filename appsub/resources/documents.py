"""YAML document helpers for Kubernetes manifests."""

from __future__ import annotations

import io
import re
import typing as typ

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

YAML_VERSION = (1, 2)

_DOCUMENT_SEPARATOR = re.compile(r"^---[ \t]*(?:#.*)?$", re.MULTILINE)

__all__ = [
    "YAML_VERSION",
    "dump_document",
    "is_manifest",
    "load_document",
    "split_documents",
    "try_load_document",
    "verbatim_metadata",
]


def _yaml(typ_: str = "safe") -> YAML:
    yaml = YAML(typ=typ_)
    yaml.version = YAML_VERSION
    yaml.default_flow_style = False
    return yaml


def split_documents(text: str) -> list[str]:
    """Split a multi-document YAML stream into non-empty document texts."""
    parts = _DOCUMENT_SEPARATOR.split(text)
    return [part.strip("\t \n") for part in parts if part.strip("\t \n")]


def load_document(text: str) -> dict[str, typ.Any] | None:
    """Parse one YAML document, returning ``None`` unless it is a mapping.

    Raises
    ------
    ruamel.yaml.error.YAMLError
        If the text is not valid YAML.

    """
    loaded = _yaml().load(text)
    if not isinstance(loaded, dict):
        return None
    return loaded


def is_manifest(document: dict[str, typ.Any] | None) -> bool:
    """Return True when ``document`` declares both ``apiVersion`` and ``kind``."""
    if document is None:
        return False
    return bool(document.get("apiVersion")) and bool(document.get("kind"))


def verbatim_metadata(text: str) -> tuple[dict[str, str], dict[str, str]]:
    """Return labels and annotations with every value kept as written.

    The base loader performs no scalar resolution, so values such as
    ``true`` or ``1.10`` come back exactly as they appear in the source.
    """
    try:
        loaded = _yaml("base").load(text)
    except YAMLError:
        return {}, {}
    if not isinstance(loaded, dict):
        return {}, {}
    metadata = loaded.get("metadata")
    if not isinstance(metadata, dict):
        return {}, {}
    return _string_map(metadata.get("labels")), _string_map(
        metadata.get("annotations")
    )


def _string_map(value: object) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(key): "" if val is None else str(val) for key, val in value.items()}


def dump_document(document: dict[str, typ.Any]) -> str:
    """Serialize a mapping back to block-style YAML without a version directive."""
    yaml = YAML(typ="safe")
    yaml.default_flow_style = False
    yaml.indent(mapping=2, sequence=4, offset=2)
    with io.StringIO() as stream:
        yaml.dump(document, stream)
        return stream.getvalue()


def try_load_document(text: str) -> dict[str, typ.Any] | None:
    """Parse one document, returning ``None`` for invalid YAML."""
    try:
        return load_document(text)
    except YAMLError:
        return None
