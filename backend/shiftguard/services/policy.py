"""
Shift policy resolved from application config.

All limits are converted once to whole seconds and cents so rule checks
never compare floats.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from flask import current_app

from ..models.timekeeping import BREAK_COMPLETED
from ..money import to_cents


@dataclass(frozen=True)
class ShiftPolicy:
    standard_shift_seconds: int = 8 * 3600
    max_daily_overtime_seconds: int = 4 * 3600
    max_weekly_overtime_seconds: int = 12 * 3600

    late_grace_seconds: int = 7 * 60
    late_severe_seconds: int = 30 * 60
    missed_clock_out_seconds: int = 16 * 3600

    required_break_after_seconds: int = 6 * 3600
    required_break_seconds: int = 30 * 60
    min_break_seconds: int = 10 * 60
    max_break_seconds: int = 60 * 60

    cash_discrepancy_threshold_cents: int = 500
    cash_variance_critical_cents: int = 5000
    max_starting_cash_cents: int = 10_000_000

    refund_approval_limit_cents: int = 5000
    suspicious_discount_percent: int = 50

    max_refund_chain_depth: int = 10

    def satisfies_required_break(self, brk) -> bool:
        """A completed break meets the requirement when it is long enough or was itself required.

        Required breaks that run short are judged by their own minimum instead.
        """
        if brk.status != BREAK_COMPLETED or brk.duration_seconds is None:
            return False
        return bool(brk.is_required) or brk.duration_seconds >= self.required_break_seconds

    @classmethod
    def from_config(cls, config: Mapping) -> "ShiftPolicy":
        def hours(key, default):
            return int(round(float(config.get(key, default)) * 3600))

        def minutes(key, default):
            return int(round(float(config.get(key, default)) * 60))

        def cents(key, default):
            return to_cents(config.get(key, default))

        return cls(
            standard_shift_seconds=hours("STANDARD_SHIFT_HOURS", 8),
            max_daily_overtime_seconds=hours("MAX_DAILY_OVERTIME_HOURS", 4),
            max_weekly_overtime_seconds=hours("MAX_WEEKLY_OVERTIME_HOURS", 12),
            late_grace_seconds=minutes("LATE_GRACE_MINUTES", 7),
            late_severe_seconds=minutes("LATE_SEVERE_MINUTES", 30),
            missed_clock_out_seconds=hours("MISSED_CLOCK_OUT_HOURS", 16),
            required_break_after_seconds=hours("REQUIRED_BREAK_AFTER_HOURS", 6),
            required_break_seconds=minutes("REQUIRED_BREAK_MINUTES", 30),
            min_break_seconds=minutes("MIN_BREAK_MINUTES", 10),
            max_break_seconds=minutes("MAX_BREAK_MINUTES", 60),
            cash_discrepancy_threshold_cents=cents("CASH_DISCREPANCY_THRESHOLD", "5.00"),
            cash_variance_critical_cents=cents("CASH_VARIANCE_CRITICAL_THRESHOLD", "50.00"),
            max_starting_cash_cents=cents("MAX_STARTING_CASH", "100000.00"),
            refund_approval_limit_cents=cents("REFUND_APPROVAL_LIMIT", "50.00"),
            suspicious_discount_percent=int(config.get("SUSPICIOUS_DISCOUNT_PERCENT", 50)),
        )


def current_policy() -> ShiftPolicy:
    return ShiftPolicy.from_config(current_app.config)
