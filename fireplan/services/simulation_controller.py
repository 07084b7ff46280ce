"""Simulation controller for orchestrating calculator runs and caching."""

import hashlib
import json
from typing import Dict, Optional

from loguru import logger

from fireplan.config import get_config
from fireplan.schemas import (
    CalculatorResult,
    DerivedInputs,
    ProjectionParameters,
    SimulationParameters,
)
from fireplan.utils import calculate_horizon_years

from .projection_service import ProjectionService
from .simulation_service import SimulationService

INPUT_KEYS = (
    "current_net_worth",
    "annual_savings",
    "annual_expenses",
    "expected_return",
    "inflation",
    "withdrawal_rate",
    "current_age",
    "retirement_age",
    "retirement_duration",
    "volatility",
    "simulation_count",
)


class SimulationController:
    """Controller for managing calculator evaluation and caching.

    Holds the last result keyed by an input hash so that repeated
    evaluations with unchanged inputs reuse it.
    """

    def __init__(
        self,
        projection_service: Optional[ProjectionService] = None,
        simulation_service: Optional[SimulationService] = None,
    ):
        self.projection_service = projection_service or ProjectionService()
        self.simulation_service = simulation_service or SimulationService()
        self.state: Dict[str, object] = {}

    def defaults(self, derived: Optional[DerivedInputs] = None) -> dict:
        """Default calculator inputs, overlaid with history-derived values.

        Args:
            derived: Inputs derived from account history; an expected return
                of None keeps the configured default

        Returns:
            Dictionary of calculator inputs
        """
        config = get_config()
        inputs = {
            "current_net_worth": config.default_current_net_worth,
            "annual_savings": config.default_annual_savings,
            "annual_expenses": config.default_annual_expenses,
            "expected_return": config.default_expected_return,
            "inflation": config.default_inflation,
            "withdrawal_rate": config.default_withdrawal_rate,
            "current_age": config.default_current_age,
            "retirement_age": config.default_retirement_age,
            "retirement_duration": config.default_retirement_duration,
            "volatility": config.default_volatility,
            "simulation_count": config.default_simulation_count,
        }
        if derived is not None:
            inputs["current_net_worth"] = derived.current_net_worth
            inputs["annual_expenses"] = derived.annual_expenses
            inputs["annual_savings"] = derived.annual_savings
            if derived.expected_return is not None:
                inputs["expected_return"] = derived.expected_return
        return inputs

    def calculate_input_hash(self, inputs: dict, seed: Optional[int] = None) -> str:
        """Calculate hash of inputs for change detection.

        Args:
            inputs: Dictionary of calculator inputs
            seed: Monte Carlo seed, hashed alongside the inputs

        Returns:
            MD5 hash string of inputs
        """
        inputs_for_hash = {k: inputs.get(k) for k in INPUT_KEYS}
        inputs_for_hash["seed"] = seed
        inputs_hash = hashlib.md5(
            json.dumps(inputs_for_hash, sort_keys=True, default=str).encode()
        ).hexdigest()
        return inputs_hash

    def detect_input_changes(self, inputs_hash: str) -> bool:
        """Detect if inputs have changed and clear cache if needed.

        Args:
            inputs_hash: Current inputs hash

        Returns:
            True if inputs changed, False otherwise
        """
        inputs_changed = False
        if "last_inputs_hash" in self.state:
            if self.state["last_inputs_hash"] != inputs_hash:
                inputs_changed = True
                self.state.pop("result", None)
                logger.info("Calculator inputs changed, cached result cleared")

        self.state["last_inputs_hash"] = inputs_hash
        return inputs_changed

    def get_cached_result(self, inputs_changed: bool) -> Optional[CalculatorResult]:
        """Get cached result if available and inputs haven't changed."""
        if not inputs_changed and "result" in self.state:
            return self.state["result"]
        return None

    def reset(self) -> None:
        """Forget the cached result and input hash."""
        self.state.clear()

    def build_parameters(self, inputs: dict):
        """Build projection and simulation parameters from calculator inputs.

        The projection horizon is stretched to the simulated horizon so both
        series cover the same years.
        """
        years_to_retirement, total_years = calculate_horizon_years(
            inputs["current_age"], inputs["retirement_age"], inputs["retirement_duration"]
        )
        projection_params = ProjectionParameters(
            current_net_worth=inputs["current_net_worth"],
            annual_savings=inputs["annual_savings"],
            annual_expenses=inputs["annual_expenses"],
            expected_return=inputs["expected_return"],
            inflation=inputs["inflation"],
            withdrawal_rate=inputs["withdrawal_rate"],
            max_years=total_years,
        )
        simulation_params = SimulationParameters(
            current_net_worth=inputs["current_net_worth"],
            annual_savings=inputs["annual_savings"],
            annual_expenses=inputs["annual_expenses"],
            expected_return=inputs["expected_return"],
            inflation=inputs["inflation"],
            volatility=inputs["volatility"],
            current_age=inputs["current_age"],
            retirement_age=inputs["retirement_age"],
            retirement_duration=inputs["retirement_duration"],
            simulation_count=inputs["simulation_count"],
            withdrawal_rate=inputs["withdrawal_rate"],
        )
        return projection_params, simulation_params

    def calculate(self, inputs: Optional[dict] = None, seed: Optional[int] = None) -> CalculatorResult:
        """Evaluate the calculator, reusing the cached result when possible.

        Args:
            inputs: Calculator inputs; missing keys fall back to defaults
            seed: Seed for the Monte Carlo run; part of the cache key

        Returns:
            CalculatorResult with projection and simulation
        """
        merged = {**self.defaults(), **(inputs or {})}
        inputs_hash = self.calculate_input_hash(merged, seed)

        inputs_changed = self.detect_input_changes(inputs_hash)
        cached = self.get_cached_result(inputs_changed)
        if cached is not None:
            logger.info("Reusing cached calculator result")
            return cached

        projection_params, simulation_params = self.build_parameters(merged)
        result = CalculatorResult(
            projection=self.projection_service.project(projection_params),
            simulation=self.simulation_service.run_simulation(simulation_params, seed=seed),
        )
        self.state["result"] = result
        return result
