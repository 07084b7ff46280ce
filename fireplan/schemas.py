"""Data models and type definitions for the FIRE projection engine.

This module defines all data structures used throughout the package:
- Projection and simulation parameters
- Projection, trial and simulation results
- Inputs derived from account and transaction history
- Custom exception classes

All parameter and result records are immutable value objects. Percent
fields hold whole percentages (``4`` means 4%).
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

import numpy as np
import pandas as pd

PERCENTILE_LEVELS = (10, 25, 50, 75, 90)


@dataclass(frozen=True)
class ProjectionParameters:
    """Parameters for the deterministic projection."""

    current_net_worth: float
    annual_savings: float
    annual_expenses: float
    expected_return: float  # nominal, percent
    inflation: float  # percent
    withdrawal_rate: float  # nominal safe withdrawal rate, percent
    max_years: Optional[int] = None  # falls back to config.default_max_years


@dataclass(frozen=True)
class ProjectionResult:
    """Result of a deterministic projection.

    ``fire_number`` is ``math.inf`` when the real withdrawal rate is not
    positive; ``balance >= fire_number`` is then always false.
    """

    fire_number: float
    years_to_fire: Optional[int]
    projection_data: np.ndarray
    never_reached: bool

    @property
    def reachable(self) -> bool:
        """Whether a finite FIRE number exists."""
        return not math.isinf(self.fire_number)

    def to_frame(self) -> pd.DataFrame:
        """Tabular view: one row per projected year."""
        return pd.DataFrame(
            {"balance": self.projection_data},
            index=pd.RangeIndex(len(self.projection_data), name="year"),
        )


@dataclass(frozen=True)
class SimulationParameters:
    """Parameters for the Monte Carlo simulation."""

    current_net_worth: float
    annual_savings: float
    annual_expenses: float
    expected_return: float  # nominal, percent
    inflation: float  # percent
    volatility: float  # std dev of annual return, percent
    current_age: int
    retirement_age: int
    retirement_duration: int
    simulation_count: Optional[int] = None  # falls back to config
    withdrawal_rate: Optional[float] = None  # unused by the simulator


@dataclass(frozen=True)
class TrialResult:
    """One simulated path.

    ``balances`` is shorter than ``total_years + 1`` when the portfolio was
    depleted during retirement; the depleting balance is its last entry.
    """

    success: bool
    final_balance: float
    balances: List[float]


@dataclass(frozen=True)
class PercentileBands:
    """Per-year cross-trial percentiles of portfolio balance."""

    p10: np.ndarray
    p25: np.ndarray
    p50: np.ndarray
    p75: np.ndarray
    p90: np.ndarray

    def as_dict(self) -> dict:
        return {f"p{level}": getattr(self, f"p{level}") for level in PERCENTILE_LEVELS}


@dataclass(frozen=True)
class SimulationResult:
    """Results from a Monte Carlo simulation run."""

    success_rate: float  # percent, 0-100
    percentiles: PercentileBands
    years_to_retirement: int
    total_years: int
    simulation_count: int

    def to_frame(self) -> pd.DataFrame:
        """Tabular view: one row per year, one column per percentile."""
        return pd.DataFrame(
            self.percentiles.as_dict(),
            index=pd.RangeIndex(len(self.percentiles.p50), name="year"),
        )


@dataclass(frozen=True)
class DerivedInputs:
    """Calculator inputs derived from accounts, transactions and quotes."""

    current_net_worth: float
    annual_expenses: float
    annual_savings: float
    expected_return: Optional[float]  # None when history can't support a CAGR
    first_trade_date: Optional[date] = None


@dataclass(frozen=True)
class CalculatorResult:
    """Combined output of one calculator evaluation."""

    projection: ProjectionResult
    simulation: SimulationResult


class ValidationError(Exception):
    """Custom exception for validation errors."""

    pass


class SimulationError(Exception):
    """Custom exception for simulation errors."""

    pass


class SimulationCancelled(SimulationError):
    """Raised when a simulation is cancelled between trial batches."""

    pass
