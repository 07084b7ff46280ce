"""Utility functions for the FIRE projection engine.

This module provides helper functions used throughout the package:
- Nominal/real rate conversions
- Horizon (accumulation/decumulation) arithmetic
- Caller-side input validation
- Display formatting for log output
"""

import math
from numbers import Integral, Real
from typing import Tuple

from .schemas import ValidationError


def real_withdrawal_rate(withdrawal_rate: float, inflation: float) -> float:
    """Real withdrawal rate (decimal) via the Fisher relation.

    ``(1 + w) / (1 + i) - 1`` with both inputs given as whole percentages.
    """
    return (1 + withdrawal_rate / 100) / (1 + inflation / 100) - 1


def real_return_rate(expected_return: float, inflation: float) -> float:
    """Real portfolio return (decimal) as a simple difference of percentages.

    Unlike :func:`real_withdrawal_rate` this is not compounded.
    """
    return (expected_return - inflation) / 100


def calculate_horizon_years(
    current_age: int, retirement_age: int, retirement_duration: int
) -> Tuple[int, int]:
    """Calculate years to retirement and total simulated years.

    Already-retired callers (retirement_age <= current_age) get zero
    accumulation years.
    """
    years_to_retirement = max(0, retirement_age - current_age)
    return years_to_retirement, years_to_retirement + retirement_duration


def validate_simulation_count(simulation_count: int) -> int:
    """Validate the number of Monte Carlo trials."""
    if isinstance(simulation_count, bool) or not isinstance(simulation_count, Integral):
        raise ValidationError("Simulation count must be an integer")
    if simulation_count <= 0:
        raise ValidationError("Simulation count must be positive")
    return int(simulation_count)


def validate_age_inputs(
    current_age: int, retirement_age: int, retirement_duration: int
) -> None:
    """Validate age inputs.

    Supports both pre-retirement and already-retired scenarios; only
    negative values are rejected.
    """
    if current_age < 0 or retirement_age < 0:
        raise ValidationError("Ages must be non-negative")
    if retirement_duration < 0:
        raise ValidationError("Retirement duration must be non-negative")


def validate_financial_inputs(**values: float) -> None:
    """Reject non-numeric or non-finite financial inputs.

    The projection services accept NaN and propagate it; callers that want
    to fail fast on upstream parsing errors run this first.
    """
    for name, value in values.items():
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ValidationError(f"{name} must be a number, got {value!r}")
        if not math.isfinite(value):
            raise ValidationError(f"{name} must be finite, got {value!r}")

    if values.get("annual_expenses", 0) < 0:
        raise ValidationError("Annual expenses must be non-negative")


def format_currency(amount: float) -> str:
    """Format currency amount for display."""
    if math.isinf(amount):
        return "unreachable"
    abs_amount = abs(amount)
    sign = "-" if amount < 0 else ""

    if abs_amount >= 1e6:
        return f"{sign}${abs_amount/1e6:.1f}M"
    elif abs_amount >= 1e3:
        return f"{sign}${abs_amount/1e3:.1f}K"
    else:
        return f"{sign}${abs_amount:.0f}"


def format_percentage(value: float, decimals: int = 1) -> str:
    """Format a whole-number percentage for display."""
    return f"{value:.{decimals}f}%"


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers, returning default if denominator is zero."""
    return numerator / denominator if denominator != 0 else default


def round_half_up(value: float) -> float:
    """Round to the nearest integer, ties toward +infinity.

    Non-finite values are returned unchanged.
    """
    if not math.isfinite(value):
        return value
    return float(math.floor(value + 0.5))
