"""Git subscription sync loop, scheduling and drift detection."""

from __future__ import annotations

from .item import PreparedResources, SubscriberItem, SyncDependencies, TickOutcome
from .observability import (
    ErrorCategory,
    SkipReason,
    SyncEventLogger,
    SyncEventType,
    categorize_error,
)
from .paths import load_filter_config, resource_path, resource_subpath
from .schedule import DriftDetector, ReconcileRate, ReconcileSchedule
from .subscriber import GitSubscriber
from .timewindow import in_window, is_blocked

__all__ = [
    "DriftDetector",
    "ErrorCategory",
    "GitSubscriber",
    "PreparedResources",
    "ReconcileRate",
    "ReconcileSchedule",
    "SkipReason",
    "SubscriberItem",
    "SyncDependencies",
    "SyncEventLogger",
    "SyncEventType",
    "TickOutcome",
    "categorize_error",
    "in_window",
    "is_blocked",
    "load_filter_config",
    "resource_path",
    "resource_subpath",
]
