"""Capture femtologging output emitted by appsub modules."""

from __future__ import annotations

import contextlib
import dataclasses as dc
import threading
import time
import typing as typ

from femtologging import get_logger


@dc.dataclass(slots=True)
class CapturedRecord:
    """One log record seen by :class:`LogCapture`."""

    logger: str
    level: str
    message: str
    exc_info: object | None = None


class LogCapture:
    """femtologging handler collecting records for assertions.

    Records arrive on the femtologging worker thread, so assertions wait
    for them with :meth:`wait_for`.
    """

    def __init__(self) -> None:
        self.records: list[CapturedRecord] = []
        self._condition = threading.Condition()

    def handle(self, logger: str, level: str, message: str) -> None:
        self._append(CapturedRecord(str(logger), str(level), message))

    def handle_record(self, record: dict[str, object]) -> None:
        self._append(
            CapturedRecord(
                logger=str(record.get("logger", "")),
                level=str(record.get("level", "")),
                message=str(record.get("message", "")),
                exc_info=record.get("exc_info"),
            )
        )

    def _append(self, record: CapturedRecord) -> None:
        with self._condition:
            self.records.append(record)
            self._condition.notify_all()

    @property
    def messages(self) -> list[str]:
        with self._condition:
            return [record.message for record in self.records]

    def wait_for(
        self, predicate: typ.Callable[[str], bool], timeout: float = 1.0
    ) -> CapturedRecord:
        """Return the first record whose message satisfies ``predicate``."""
        deadline = time.monotonic() + timeout
        with self._condition:
            while True:
                for record in self.records:
                    if predicate(record.message):
                        return record
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._condition.wait(timeout=remaining)
        seen = [record.message for record in self.records]
        msg = f"no matching log record; captured: {seen}"
        raise AssertionError(msg)


@contextlib.contextmanager
def capture_logs(logger_name: str, *, level: str = "TRACE") -> typ.Iterator[LogCapture]:
    """Capture records emitted by the femtologging logger ``logger_name``."""
    logger = get_logger(logger_name)
    previous_level = logger.level
    previous_propagate = logger.propagate
    logger.set_level(level)
    logger.set_propagate(False)

    capture = LogCapture()
    logger.add_handler(capture)
    try:
        yield capture
    finally:
        logger.remove_handler(capture)
        logger.set_level(previous_level)
        logger.set_propagate(previous_propagate)
