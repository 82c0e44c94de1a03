"""Kustomization rendering and kustomization overrides.

Rendering shells out to ``kustomize build`` (or ``kubectl kustomize`` when
only kubectl is installed). Any failure here aborts the whole tick because a
partially rendered set would make the apply engine prune resources that
are still wanted.
"""

from __future__ import annotations

import shutil
import subprocess
import typing as typ

from ruamel.yaml.error import YAMLError

from appsub.constants import KUSTOMIZATION_FILES
from appsub.errors import BatchAbortError
from appsub.logging import get_logger, log_info
from appsub.resources.documents import dump_document, load_document
from appsub.resources.overrides import deep_merge

if typ.TYPE_CHECKING:
    from pathlib import Path

    from appsub.models import Subscription

logger = get_logger(__name__)

KUSTOMIZE_TIMEOUT_SECONDS = 120

__all__ = [
    "KUSTOMIZE_TIMEOUT_SECONDS",
    "KustomizeCliBuilder",
    "apply_kustomize_overrides",
    "relative_dir",
]


class KustomizeCliBuilder:
    """Render kustomizations with the ``kustomize`` or ``kubectl`` CLI."""

    def __init__(self, *, timeout_s: float = KUSTOMIZE_TIMEOUT_SECONDS) -> None:
        """Initialise the builder with a per-build timeout."""
        self.timeout_s = timeout_s

    def _argv(self, directory: Path) -> list[str]:
        kustomize = shutil.which("kustomize")
        if kustomize is not None:
            return [kustomize, "build", str(directory)]
        kubectl = shutil.which("kubectl")
        if kubectl is not None:
            return [kubectl, "kustomize", str(directory)]
        raise BatchAbortError.kustomize_failed(
            str(directory), "neither kustomize nor kubectl found on PATH"
        )

    def __call__(self, directory: Path) -> str:
        """Return the rendered YAML for ``directory``.

        Raises
        ------
        BatchAbortError
            If the build fails, times out or no renderer is installed.

        """
        argv = self._argv(directory)
        try:
            result = subprocess.run(  # noqa: S603  # renderer resolved from PATH
                argv,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout_s,
            )
        except subprocess.TimeoutExpired as exc:
            raise BatchAbortError.kustomize_failed(
                str(directory), f"timed out after {self.timeout_s:g}s"
            ) from exc
        if result.returncode != 0:
            raise BatchAbortError.kustomize_failed(
                str(directory), result.stderr.strip()
            )
        return result.stdout


def relative_dir(repo_root: Path, directory: Path) -> str:
    """Return ``directory`` relative to ``repo_root`` in POSIX form."""
    try:
        return directory.relative_to(repo_root).as_posix()
    except ValueError:
        return directory.as_posix()


def _override_target(package_name: str) -> str:
    """Strip a trailing kustomization file name from an override's package."""
    target = package_name.strip()
    for filename in KUSTOMIZATION_FILES:
        if target.endswith(filename):
            target = target[: -len(filename)]
            break
    return target.strip("/") or "."


def _kustomization_file(directory: Path) -> Path:
    for filename in KUSTOMIZATION_FILES:
        candidate = directory / filename
        if candidate.is_file():
            return candidate
    return directory / KUSTOMIZATION_FILES[0]


def apply_kustomize_overrides(
    subscription: Subscription, repo_root: Path, directory: Path
) -> bool:
    """Merge the subscription's overrides for ``directory`` into its kustomization.

    An override targets a kustomization when its package name is the
    directory's path relative to the repository root, optionally followed by
    the kustomization file name. Each entry's ``value`` mapping is merged
    into the kustomization file.

    Returns
    -------
    bool
        True when the kustomization file was rewritten.

    Raises
    ------
    BatchAbortError
        If the kustomization cannot be read or an override is malformed.

    """
    relative = relative_dir(repo_root, directory)
    blocks = [
        override
        for override in subscription.spec.package_overrides or []
        if _override_target(override.package_name) == relative
    ]
    if not blocks:
        return False

    kustomization = _kustomization_file(directory)
    try:
        content = load_document(kustomization.read_text(encoding="utf-8")) or {}
    except (OSError, YAMLError) as exc:
        raise BatchAbortError.kustomize_override_failed(relative, str(exc)) from exc

    for block in blocks:
        for entry in block.package_overrides:
            value = entry.get("value")
            if not isinstance(value, dict):
                raise BatchAbortError.kustomize_override_failed(
                    relative, "override value must be a mapping"
                )
            deep_merge(content, value)

    try:
        kustomization.write_text(dump_document(content), encoding="utf-8")
    except OSError as exc:
        raise BatchAbortError.kustomize_override_failed(relative, str(exc)) from exc
    log_info(logger, "Applied package overrides to kustomization %s", relative)
    return True
