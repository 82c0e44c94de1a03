"""Pre and post deployment hooks driven by job templates stored in Git."""

from __future__ import annotations

from .ledger import JobEntry, JobInstances, default_suffix, is_job_successful
from .placement import PlacementResolver
from .registry import AppliedInstance, HookRegistry, Hooks, HookType
from .source import GitHookSource, HookSource, HookTemplates, discover_templates
from .templates import override_template

__all__ = [
    "AppliedInstance",
    "GitHookSource",
    "HookRegistry",
    "HookSource",
    "HookTemplates",
    "HookType",
    "Hooks",
    "JobEntry",
    "JobInstances",
    "PlacementResolver",
    "default_suffix",
    "discover_templates",
    "is_job_successful",
    "override_template",
]
