"""
DailySweepScheduler -- In-process ticker for the probation sweep.

Contract:
    ``tick()`` evaluates ``should_run_sweep`` against the clock and, when
    due, calls the sweep callable with today's date.  ``start()`` /
    ``stop()`` run ticks on a background thread.

Invariants enforced:
    - At most one successful sweep per calendar day per scheduler.
    - A failed sweep is retried on the next tick.
    - Graceful shutdown: ``stop()`` lets the current tick finish.

Non-goals:
    - NOT a distributed scheduler.  Two processes may both sweep; the
      compare-and-set on probation_completed keeps that harmless.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from hrms_batch.domain.schedule import should_run_sweep
from hrms_batch.domain.types import SweepResult
from hrms_config.schema import AllocationSettings
from hrms_kernel.domain.clock import Clock, SystemClock
from hrms_kernel.logging_config import get_logger

logger = get_logger("batch.scheduler")


def session_sweep_runner(
    session_factory: Callable[[], Session],
    settings: AllocationSettings | None = None,
    clock: Clock | None = None,
) -> Callable[[date], SweepResult]:
    """Sweep callable that opens and closes its own session per run."""
    from hrms_batch.services.sweep import ProbationSweepDriver

    def run(as_of: date) -> SweepResult:
        session = session_factory()
        try:
            return ProbationSweepDriver(session, settings, clock).run_daily_sweep(as_of=as_of)
        finally:
            session.close()

    return run


class DailySweepScheduler:
    """Fires the sweep once per day at ``sweep_hour``."""

    def __init__(
        self,
        sweep: Callable[[date], Any],
        clock: Clock | None = None,
        sweep_hour: int = 1,
        tick_interval_seconds: int = 60,
    ):
        self._sweep = sweep
        self._clock = clock or SystemClock()
        self._sweep_hour = sweep_hour
        self._tick_interval = tick_interval_seconds
        self._last_run_date: date | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def from_settings(
        cls,
        sweep: Callable[[date], Any],
        settings: AllocationSettings,
        clock: Clock | None = None,
    ) -> DailySweepScheduler:
        return cls(
            sweep,
            clock=clock,
            sweep_hour=settings.sweep_hour,
            tick_interval_seconds=settings.sweep_tick_seconds,
        )

    @property
    def last_run_date(self) -> date | None:
        return self._last_run_date

    def tick(self) -> bool:
        """Run the sweep if due (public for testing). Returns True if it ran."""
        now = self._clock.now()
        if not should_run_sweep(now, self._sweep_hour, self._last_run_date):
            return False
        try:
            self._sweep(now.date())
        except Exception:
            logger.exception("scheduled_sweep_failed", extra={"as_of": now.date().isoformat()})
            return False
        self._last_run_date = now.date()
        logger.info("scheduled_sweep_fired", extra={"as_of": now.date().isoformat()})
        return True

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="probation-sweep-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={"tick_interval": self._tick_interval, "sweep_hour": self._sweep_hour},
        )

    def stop(self, timeout: float = 30.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._tick_interval)
