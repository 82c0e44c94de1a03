"""Structured sync-loop events and error categorization.

Events are emitted as single log lines of ``key=value`` pairs prefixed with
the event type, suitable for parsing by log aggregators.
"""

from __future__ import annotations

import enum
import typing as typ

from appsub.errors import (
    AppSubConfigError,
    ApplyError,
    BatchAbortError,
    ClassificationError,
    ConnectionConfigError,
    EmptyResourceSetError,
    GitFetchError,
    HookError,
    ResourceTransformError,
)
from appsub.logging import get_logger, log_debug, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

    from appsub.models import SubscriptionKey

logger = get_logger(__name__)

__all__ = [
    "ErrorCategory",
    "SkipReason",
    "SyncEventLogger",
    "SyncEventType",
    "categorize_error",
]


class SyncEventType(enum.StrEnum):
    """Structured log event types for the sync loop."""

    TICK_STARTED = "sync.tick.started"
    TICK_SKIPPED = "sync.tick.skipped"
    TICK_COMPLETED = "sync.tick.completed"
    TICK_FAILED = "sync.tick.failed"
    RESOURCE_DROPPED = "sync.resource.dropped"
    BATCH_ABORTED = "sync.batch.aborted"


class SkipReason(enum.StrEnum):
    """Why a tick did no work."""

    TIME_WINDOW = "time_window"
    PAUSED = "paused"
    WEBHOOK = "webhook"
    UNCHANGED_COMMIT = "unchanged_commit"
    PRE_HOOKS_PENDING = "pre_hooks_pending"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CONFIGURATION = "configuration"
    CLASSIFICATION = "classification"
    RESOURCE = "resource"
    BATCH_ABORT = "batch_abort"
    EMPTY_RESOURCE_SET = "empty_resource_set"
    APPLY = "apply"
    HOOK = "hook"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (GitFetchError, ErrorCategory.TRANSIENT),
    (ConnectionConfigError, ErrorCategory.CONFIGURATION),
    (AppSubConfigError, ErrorCategory.CONFIGURATION),
    (ClassificationError, ErrorCategory.CLASSIFICATION),
    (ResourceTransformError, ErrorCategory.RESOURCE),
    (BatchAbortError, ErrorCategory.BATCH_ABORT),
    (EmptyResourceSetError, ErrorCategory.EMPTY_RESOURCE_SET),
    (ApplyError, ErrorCategory.APPLY),
    (HookError, ErrorCategory.HOOK),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes."""
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.UNKNOWN


class SyncEventLogger:
    """Emit structured sync-loop events via femtologging.

    Events are emitted at INFO for progress, DEBUG for skips, WARNING for
    dropped resources and aborted batches, and ERROR for failed ticks.
    """

    def log_tick_started(self, key: SubscriptionKey, *, attempt: int) -> None:
        """Log the start of a reconciliation attempt."""
        log_info(
            logger,
            "[%s] key=%s attempt=%d",
            SyncEventType.TICK_STARTED,
            key,
            attempt,
        )

    def log_tick_skipped(self, key: SubscriptionKey, reason: SkipReason) -> None:
        """Log a tick that was skipped before doing any work."""
        log_debug(
            logger, "[%s] key=%s reason=%s", SyncEventType.TICK_SKIPPED, key, reason
        )

    def log_tick_completed(
        self,
        key: SubscriptionKey,
        *,
        commit: str,
        resources: int,
        duration: dt.timedelta,
    ) -> None:
        """Log a tick whose resources were handed to the apply engine."""
        log_info(
            logger,
            "[%s] key=%s commit=%s resources=%d duration_seconds=%.3f",
            SyncEventType.TICK_COMPLETED,
            key,
            commit,
            resources,
            duration.total_seconds(),
        )

    def log_tick_failed(
        self, key: SubscriptionKey, error: BaseException, duration: dt.timedelta
    ) -> None:
        """Log a failed tick with its error category."""
        log_error(
            logger,
            "[%s] key=%s duration_seconds=%.3f error_type=%s error_category=%s "
            "error_message=%s",
            SyncEventType.TICK_FAILED,
            key,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_resource_dropped(
        self, key: SubscriptionKey, error: ResourceTransformError
    ) -> None:
        """Log a manifest dropped from the tick's resource list."""
        log_warning(
            logger,
            "[%s] key=%s resource=%s reason=%s",
            SyncEventType.RESOURCE_DROPPED,
            key,
            error.resource_name,
            error.reason,
        )

    def log_batch_aborted(self, key: SubscriptionKey, error: BatchAbortError) -> None:
        """Log a tick whose resource list was discarded."""
        log_warning(
            logger,
            "[%s] key=%s error_message=%s",
            SyncEventType.BATCH_ABORTED,
            key,
            str(error),
        )
