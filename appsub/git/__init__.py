"""Repository fetching: credential resolution, clone options and transports."""

from __future__ import annotations

from .cli import GitCliTransport
from .connection import ConnectionConfig, RepoConnection, resolve_connection
from .fetcher import CloneOptions, build_clone_options, fetch, resolve

__all__ = [
    "CloneOptions",
    "ConnectionConfig",
    "GitCliTransport",
    "RepoConnection",
    "build_clone_options",
    "fetch",
    "resolve",
    "resolve_connection",
]
