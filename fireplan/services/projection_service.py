"""Deterministic projection service.

Computes a single noise-free, inflation-adjusted compound-growth
trajectory and the FIRE target it is measured against:
- FIRE number from the real (Fisher-adjusted) withdrawal rate
- Yearly balances grown by the real return plus annual savings
- First year (1-based) at which the balance reaches the FIRE number
"""

import math
from typing import List, Optional

import numpy as np
from loguru import logger

from fireplan.config import get_config
from fireplan.schemas import ProjectionParameters, ProjectionResult
from fireplan.utils import (
    format_currency,
    real_return_rate,
    real_withdrawal_rate,
    round_half_up,
)


class ProjectionService:
    """Service for deterministic FIRE projections."""

    def __init__(self):
        self.config = get_config()

    def calculate_fire_number(self, annual_expenses: float, withdrawal_rate: float, inflation: float) -> float:
        """Portfolio size that sustains ``annual_expenses`` at the real withdrawal rate.

        Returns ``math.inf`` when the real rate is zero or negative. A NaN
        rate fails the ``<= 0`` check and yields NaN.
        """
        real_rate = real_withdrawal_rate(withdrawal_rate, inflation)
        if real_rate <= 0:
            return math.inf
        return round_half_up(annual_expenses / real_rate)

    def project(self, params: ProjectionParameters) -> ProjectionResult:
        """Run the deterministic projection."""
        max_years = params.max_years if params.max_years is not None else self.config.default_max_years
        fire_number = self.calculate_fire_number(
            params.annual_expenses, params.withdrawal_rate, params.inflation
        )
        if math.isinf(fire_number):
            logger.warning(
                "FIRE number unreachable: withdrawal rate {}% does not beat inflation {}%",
                params.withdrawal_rate,
                params.inflation,
            )

        real_return = real_return_rate(params.expected_return, params.inflation)

        balance = params.current_net_worth
        projection_data: List[float] = [balance]
        years_to_fire: Optional[int] = None

        for year in range(1, max_years + 1):
            balance = balance + balance * real_return + params.annual_savings
            projection_data.append(balance)

            # Comparison against inf is always False, never raises
            if years_to_fire is None and balance >= fire_number:
                years_to_fire = year

        logger.debug(
            "Projection over {} years: FIRE number {}, years to FIRE {}",
            max_years,
            format_currency(fire_number),
            years_to_fire,
        )

        return ProjectionResult(
            fire_number=fire_number,
            years_to_fire=years_to_fire,
            projection_data=np.array(projection_data, dtype=float),
            never_reached=years_to_fire is None,
        )
