"""Configuration for the Git subscription reconciler.

Usage
-----
Create a configuration with defaults:

>>> config = AppSubConfig()
>>> config.resync_every
6

Or load from environment variables:

>>> import os
>>> os.environ["APPSUB_RESYNC_EVERY"] = "10"
>>> AppSubConfig.from_env().resync_every
10

"""

from __future__ import annotations

import dataclasses as dc
import os
import tempfile
from pathlib import Path

from appsub.errors import AppSubConfigError
from appsub.logging import configure_logging, get_logger, log_warning

logger = get_logger(__name__)

_DEFAULT_WORK_DIR = Path(tempfile.gettempdir()) / "appsub"


@dc.dataclass(frozen=True, slots=True)
class AppSubConfig:
    """Runtime knobs for the sync loop and repository fetcher.

    Attributes
    ----------
    work_dir
        Parent directory for per-subscription clone directories.
    loop_period_high_s, loop_period_medium_s, loop_period_low_s
        Periodic tick interval for the ``high``, ``medium`` and ``low``
        reconcile-rate tiers.
    retry_interval_s
        Sleep between retries of the initial reconciliation attempt.
    retries
        Retry count for the initial attempt on periodic tiers.
    off_retries
        Retry count for the single attempt made on the ``off`` tier.
    resync_every
        On the ``medium`` tier, every Nth tick after a resync forces a full
        resync even when the commit is unchanged.
    status_message_limit
        Maximum length of the status message written on failure.
    git_timeout_s
        Timeout applied to each git subprocess.
    log_level
        femtologging level name applied by :meth:`apply_logging`.

    """

    work_dir: Path = _DEFAULT_WORK_DIR
    loop_period_high_s: float = 120.0
    loop_period_medium_s: float = 180.0
    loop_period_low_s: float = 3600.0
    retry_interval_s: float = 90.0
    retries: int = 1
    off_retries: int = 3
    resync_every: int = 6
    status_message_limit: int = 2000
    git_timeout_s: float = 300.0
    log_level: str = "INFO"

    @staticmethod
    def _parse_int(env_var: str, default: int, *, minimum: int = 1) -> int:
        """Read an integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise AppSubConfigError.invalid_integer(env_var, raw) from exc
        if value < minimum:
            raise AppSubConfigError.below_minimum(env_var, value, minimum)
        return value

    @classmethod
    def from_env(cls) -> AppSubConfig:
        """Create configuration from ``APPSUB_*`` environment variables.

        Raises
        ------
        AppSubConfigError
            If a numeric variable is not an integer or is out of range.

        """
        raw_work_dir = os.environ.get("APPSUB_WORK_DIR", "").strip()
        work_dir = Path(raw_work_dir) if raw_work_dir else _DEFAULT_WORK_DIR

        return cls(
            work_dir=work_dir,
            loop_period_high_s=cls._parse_int("APPSUB_LOOP_PERIOD_HIGH_SECONDS", 120),
            loop_period_medium_s=cls._parse_int(
                "APPSUB_LOOP_PERIOD_MEDIUM_SECONDS", 180
            ),
            loop_period_low_s=cls._parse_int("APPSUB_LOOP_PERIOD_LOW_SECONDS", 3600),
            retry_interval_s=cls._parse_int("APPSUB_RETRY_INTERVAL_SECONDS", 90),
            retries=cls._parse_int("APPSUB_RETRIES", 1, minimum=0),
            off_retries=cls._parse_int("APPSUB_OFF_RETRIES", 3, minimum=0),
            resync_every=cls._parse_int("APPSUB_RESYNC_EVERY", 6),
            status_message_limit=cls._parse_int("APPSUB_STATUS_MESSAGE_LIMIT", 2000),
            git_timeout_s=cls._parse_int("APPSUB_GIT_TIMEOUT_SECONDS", 300),
            log_level=os.environ.get("APPSUB_LOG_LEVEL", "INFO"),
        )

    def apply_logging(self, *, force: bool = False) -> str:
        """Configure femtologging at ``log_level`` and return the level used.

        Unknown level names fall back to ``INFO`` with a warning.
        """
        normalized, invalid = configure_logging(self.log_level, force=force)
        if invalid:
            log_warning(
                logger,
                "Invalid APPSUB_LOG_LEVEL %r, falling back to %s",
                self.log_level,
                normalized,
            )
        return normalized
