"""
Pure evaluation of the daily sweep schedule.

The sweep fires at most once per calendar day, on the first tick at or
after ``sweep_hour``.  A process that starts after that hour still runs
the day's sweep.
"""

from __future__ import annotations

from datetime import date, datetime


def should_run_sweep(
    now: datetime,
    sweep_hour: int,
    last_run_date: date | None,
) -> bool:
    if last_run_date is not None and last_run_date >= now.date():
        return False
    return now.hour >= sweep_hour
