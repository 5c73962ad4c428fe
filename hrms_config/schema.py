"""
Allocation settings schema.

A single frozen snapshot of the knobs the calculator, the probation
processor and the sweep consume.  It is passed explicitly into services and
engines; nothing reads settings from module globals.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class AllocationSettings:
    """Settings for allocation arithmetic, probation and the daily sweep."""

    # Allowed distance of an allocation set's FTE total from 100
    fte_tolerance: Decimal = Decimal("0.01")
    # Default probation length when probation_end_date is not supplied
    probation_months: int = 3
    # Standardized month length for daily-rate pro-ration
    days_per_month: int = 30
    currency_places: int = 2

    # Daily sweep
    sweep_hour: int = 1
    sweep_tick_seconds: int = 60

    # Benefit defaults, orthogonal to allocation math
    health_welfare_percentage: Decimal = Decimal("0")
    pvd_percentage: Decimal = Decimal("0")
    saving_fund_percentage: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.fte_tolerance < 0:
            raise ValueError("fte_tolerance must not be negative")
        if self.probation_months < 0:
            raise ValueError("probation_months must not be negative")
        if self.days_per_month <= 0:
            raise ValueError("days_per_month must be positive")
        if self.currency_places < 0:
            raise ValueError("currency_places must not be negative")
        if not 0 <= self.sweep_hour <= 23:
            raise ValueError("sweep_hour must be between 0 and 23")
        if self.sweep_tick_seconds <= 0:
            raise ValueError("sweep_tick_seconds must be positive")
