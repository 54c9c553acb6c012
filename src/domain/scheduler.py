"""
Conversion scheduler - Daily sweep converting due students.

A sweep selects every unconverted APPROVED or GRADUATED student whose
graduation is recorded or whose conversion date has passed, and
converts each one. A failure on one record is logged and recorded,
and the sweep moves on; the record stays unconverted and is retried
on the next sweep. Sweeps are re-runnable because conversion is
guarded per record by is_converted.

The background loop runs one sweep at start-up and then once a day
at `run_hour` (UTC) on a daemon thread.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .models import SweepResult
from .verification import VerificationService, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ConversionScheduler:
    """Runs conversion sweeps on demand and on a daily timer."""

    verification: VerificationService
    run_hour: int = 9
    clock: Callable[[], datetime] = field(default=utcnow)
    _stop_event: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _sweep_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _thread: threading.Thread | None = field(default=None, init=False, repr=False)

    def run_sweep(self) -> SweepResult:
        """
        Convert every student currently due.

        Returns:
            SweepResult with the number converted and one message per failure
        """
        with self._sweep_lock:
            result = SweepResult()
            eligible = self.verification.list_eligible_for_conversion(self.clock())
            logger.info("Found %d students eligible for conversion", len(eligible))

            for student in eligible:
                try:
                    account = self.verification.convert(student.id)
                except Exception as e:
                    # One failed record never stops the sweep
                    message = f"Failed to convert student {student.id}: {e}"
                    logger.error(message)
                    result.errors.append(message)
                    continue

                result.converted_count += 1
                logger.info("Converted student %s to user %s", student.id, account.id)

            logger.info(
                "Conversion sweep complete: %d converted, %d failed",
                result.converted_count,
                len(result.errors),
            )
            return result

    def start(self) -> None:
        """Start the daily loop in a background thread."""
        if self.is_running:
            logger.info("Conversion scheduler already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name="conversion-scheduler", daemon=True
        )
        self._thread.start()
        logger.info("Conversion scheduler started, next sweep at %s", self.next_run_at())

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Conversion scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_run_at(self, now: datetime | None = None) -> datetime:
        """Next daily run time strictly after now."""
        now = now or self.clock()
        candidate = now.replace(hour=self.run_hour, minute=0, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    def status(self) -> dict[str, object]:
        running = self.is_running
        return {
            "running": running,
            "next_run_at": self.next_run_at().isoformat() if running else None,
        }

    def _loop(self) -> None:
        self._sweep_safely()
        while True:
            delay = (self.next_run_at() - self.clock()).total_seconds()
            if self._stop_event.wait(max(delay, 0)):
                return
            self._sweep_safely()

    def _sweep_safely(self) -> None:
        # A failed sweep is logged; the next one still runs on schedule
        try:
            self.run_sweep()
        except Exception:
            logger.exception("Scheduled conversion sweep failed")
