"""Services package for the FIRE projection engine."""

from .portfolio_service import PortfolioService
from .projection_service import ProjectionService
from .simulation_controller import SimulationController
from .simulation_service import SimulationService

__all__ = [
    "PortfolioService",
    "ProjectionService",
    "SimulationController",
    "SimulationService",
]
