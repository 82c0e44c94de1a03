"""Reconcile-rate tiers and commit drift detection."""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from appsub.constants import ANNOTATION_RECONCILE_RATE

if typ.TYPE_CHECKING:
    from appsub.config import AppSubConfig
    from appsub.models import Subscription

__all__ = ["DriftDetector", "ReconcileRate", "ReconcileSchedule"]


class ReconcileRate(enum.StrEnum):
    """Values of the ``reconcile-rate`` annotation."""

    OFF = "off"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: str | None) -> ReconcileRate:
        """Parse an annotation value; missing or unknown values mean ``medium``."""
        normalized = (value or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return cls.MEDIUM

    @classmethod
    def of(cls, subscription: Subscription) -> ReconcileRate:
        """Return the tier annotated on ``subscription``."""
        return cls.parse(subscription.annotation(ANNOTATION_RECONCILE_RATE))


@dc.dataclass(frozen=True, slots=True)
class ReconcileSchedule:
    """Timing for one tier.

    ``loop_period_s`` is ``None`` for the ``off`` tier, which reconciles once
    and then waits for change notifications.
    """

    rate: ReconcileRate
    loop_period_s: float | None
    retry_interval_s: float
    retries: int

    @property
    def periodic(self) -> bool:
        """Return True when the tier ticks on a fixed period."""
        return self.loop_period_s is not None

    @classmethod
    def for_rate(cls, rate: ReconcileRate, config: AppSubConfig) -> ReconcileSchedule:
        """Build the schedule for ``rate`` from runtime configuration."""
        if rate is ReconcileRate.OFF:
            return cls(rate, None, config.retry_interval_s, config.off_retries)
        periods = {
            ReconcileRate.LOW: config.loop_period_low_s,
            ReconcileRate.MEDIUM: config.loop_period_medium_s,
            ReconcileRate.HIGH: config.loop_period_high_s,
        }
        return cls(rate, periods[rate], config.retry_interval_s, config.retries)


@dc.dataclass(slots=True)
class DriftDetector:
    """Decide whether a ``medium`` tick needs a full resync.

    ``ticks`` counts the ticks since the last full resync. While it stays
    below ``resync_every`` an unchanged commit whose last apply succeeded is
    skipped; reaching ``resync_every`` forces a resync. Every resync resets
    the count.
    """

    resync_every: int = 6
    ticks: int = 0

    def reset(self) -> None:
        """Forget the tick count."""
        self.ticks = 0

    def should_resync(
        self, commit: str, *, last_commit: str, last_successful: bool
    ) -> bool:
        """Record one tick and return True when it must resync."""
        self.ticks += 1
        unchanged = bool(last_commit) and commit == last_commit and last_successful
        if unchanged and self.ticks < self.resync_every:
            return False
        self.ticks = 0
        return True
