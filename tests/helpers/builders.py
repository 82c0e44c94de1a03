"""Builders for subscriptions, channels and manifest trees used in tests."""

from __future__ import annotations

import typing as typ

from appsub.constants import HOOK_JOB_API_VERSION, HOOK_JOB_KIND
from appsub.models import Channel, ConfigMap, Secret, Subscription, decode

if typ.TYPE_CHECKING:
    from pathlib import Path

NAMESPACE_YAML = """\
apiVersion: v1
kind: Namespace
metadata:
  name: podinfo
"""

CRD_YAML = """\
apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  name: widgets.example.com
"""

SERVICE_ACCOUNT_YAML = """\
apiVersion: v1
kind: ServiceAccount
metadata:
  name: podinfo-sa
"""


def deployment_yaml(
    name: str,
    *,
    namespace: str | None = None,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
) -> str:
    """Return a minimal Deployment manifest."""
    lines = [
        "apiVersion: apps/v1",
        "kind: Deployment",
        "metadata:",
        f"  name: {name}",
    ]
    if namespace is not None:
        lines.append(f"  namespace: {namespace}")
    if labels:
        lines.append("  labels:")
        lines.extend(f"    {key}: {value}" for key, value in labels.items())
    if annotations:
        lines.append("  annotations:")
        lines.extend(f"    {key}: {value}" for key, value in annotations.items())
    lines += ["spec:", "  replicas: 1"]
    return "\n".join(lines) + "\n"


def hook_job(name: str, *, namespace: str = "hooks") -> dict[str, typ.Any]:
    """Return an AnsibleJob template as found in a hook directory."""
    return {
        "apiVersion": HOOK_JOB_API_VERSION,
        "kind": HOOK_JOB_KIND,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "resourceVersion": "42",
            "uid": "template-uid",
        },
        "spec": {"job_template_name": name, "extra_vars": {"env": "test"}},
        "status": {"ansibleJobResult": {"status": "successful"}},
    }


def make_subscription(  # noqa: PLR0913
    name: str = "podinfo",
    namespace: str = "default",
    *,
    channel: str = "default/git-channel",
    annotations: dict[str, str] | None = None,
    labels: dict[str, str] | None = None,
    generation: int = 1,
    resource_version: str = "100",
    spec: dict[str, typ.Any] | None = None,
) -> Subscription:
    """Return a subscription decoded from camelCase JSON."""
    return decode(
        {
            "metadata": {
                "name": name,
                "namespace": namespace,
                "uid": f"{name}-uid",
                "generation": generation,
                "resourceVersion": resource_version,
                "annotations": annotations or {},
                "labels": labels or {},
            },
            "spec": {"channel": channel, **(spec or {})},
        },
        Subscription,
    )


def make_channel(
    name: str = "git-channel",
    namespace: str = "default",
    *,
    channel_type: str = "git",
    pathname: str = "https://git.example.com/org/repo.git",
    spec: dict[str, typ.Any] | None = None,
) -> Channel:
    """Return a channel decoded from camelCase JSON."""
    return decode(
        {
            "metadata": {"name": name, "namespace": namespace},
            "spec": {"type": channel_type, "pathname": pathname, **(spec or {})},
        },
        Channel,
    )


def make_secret(
    name: str,
    namespace: str = "default",
    *,
    data: dict[str, str] | None = None,
    string_data: dict[str, str] | None = None,
) -> Secret:
    """Return a secret; ``data`` values must already be base64 encoded."""
    return decode(
        {
            "metadata": {"name": name, "namespace": namespace},
            "data": data or {},
            "stringData": string_data or {},
        },
        Secret,
    )


def make_config_map(
    name: str, namespace: str = "default", *, data: dict[str, str] | None = None
) -> ConfigMap:
    """Return a config map."""
    return decode(
        {"metadata": {"name": name, "namespace": namespace}, "data": data or {}},
        ConfigMap,
    )


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Write ``files`` (relative path to content) beneath ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root
