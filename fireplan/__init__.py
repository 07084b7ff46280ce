"""Financial Independence, Retire Early (FIRE) projection engine.

Two pure entry points:
- ``project_deterministic``: inflation-adjusted compound-growth projection
  and the FIRE number it is measured against
- ``simulate_monte_carlo``: randomized accumulation/decumulation trials
  summarised as a success rate and per-year percentile bands
"""

from fireplan.schemas import (
    ProjectionParameters,
    ProjectionResult,
    SimulationParameters,
    SimulationResult,
)
from fireplan.services import ProjectionService, SimulationService


def project_deterministic(params: ProjectionParameters) -> ProjectionResult:
    """Deterministic FIRE projection."""
    return ProjectionService().project(params)


def simulate_monte_carlo(params: SimulationParameters, **kwargs) -> SimulationResult:
    """Monte Carlo FIRE simulation.

    Keyword arguments are passed to :meth:`SimulationService.run_simulation`.
    """
    return SimulationService().run_simulation(params, **kwargs)


__all__ = [
    "ProjectionParameters",
    "ProjectionResult",
    "SimulationParameters",
    "SimulationResult",
    "project_deterministic",
    "simulate_monte_carlo",
]
