"""Simulation service for Monte Carlo retirement simulations.

This module contains the Monte Carlo engine:
- Box-Muller normal sampling over an injectable uniform source
- Per-trial accumulation and decumulation trajectories
- Success rate and nearest-rank percentile bands per year

Key features:
- Trials are split into batches, each drawing from its own child of a
  ``SeedSequence``, so a seeded run gives the same result serially or in
  a process pool
- Tests may inject any zero-argument uniform source for exact replay
- Optional cancellation hook checked between batches
"""

import math
from concurrent.futures import ProcessPoolExecutor
from typing import Callable, List, Optional

import numpy as np
from loguru import logger

from fireplan.config import get_config
from fireplan.schemas import (
    PERCENTILE_LEVELS,
    PercentileBands,
    SimulationCancelled,
    SimulationError,
    SimulationParameters,
    SimulationResult,
    TrialResult,
)
from fireplan.utils import calculate_horizon_years, format_percentage, validate_simulation_count

UniformSource = Callable[[], float]


def _run_batch(
    params: SimulationParameters, count: int, seed_sequence: np.random.SeedSequence
) -> List[TrialResult]:
    """Run one batch of trials on its own generator (process-pool entry point)."""
    rng = np.random.default_rng(seed_sequence)
    return SimulationService().run_trials(params, count, rng.random)


class SimulationService:
    """Service for running Monte Carlo retirement simulations."""

    def __init__(self):
        self.config = get_config()

    # ------------------------- Sampling ------------------------- #
    @staticmethod
    def random_normal(mean: float, std_dev: float, random_source: UniformSource) -> float:
        """Draw from N(mean, std_dev) with the Box-Muller transform.

        ``u1`` is redrawn while it is exactly 0 so the log stays finite.
        """
        u1 = random_source()
        while u1 == 0.0:
            u1 = random_source()
        u2 = random_source()
        z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
        return z0 * std_dev + mean

    # ------------------------- Trials ------------------------- #
    def run_single_trial(
        self,
        params: SimulationParameters,
        years_to_retirement: int,
        random_source: UniformSource,
    ) -> TrialResult:
        """Simulate one path through accumulation and decumulation."""
        real_return = params.expected_return - params.inflation
        balance = params.current_net_worth
        balances = [balance]

        for _ in range(years_to_retirement):
            year_return = self.random_normal(real_return, params.volatility, random_source) / 100
            balance = balance * (1 + year_return) + params.annual_savings
            balances.append(balance)

        # First withdrawal is in today's dollars, inflated afterwards
        retirement_expenses = params.annual_expenses
        for _ in range(params.retirement_duration):
            year_return = self.random_normal(real_return, params.volatility, random_source) / 100
            balance = balance * (1 + year_return) - retirement_expenses
            retirement_expenses *= 1 + params.inflation / 100
            balances.append(balance)

            if balance <= 0:
                return TrialResult(success=False, final_balance=0.0, balances=balances)

        return TrialResult(success=True, final_balance=balance, balances=balances)

    def run_trials(
        self, params: SimulationParameters, count: int, random_source: UniformSource
    ) -> List[TrialResult]:
        """Run ``count`` trials drawing sequentially from one source."""
        years_to_retirement, _ = calculate_horizon_years(
            params.current_age, params.retirement_age, params.retirement_duration
        )
        return [
            self.run_single_trial(params, years_to_retirement, random_source)
            for _ in range(count)
        ]

    # ------------------------- Aggregation ------------------------- #
    def aggregate_percentiles(self, trials: List[TrialResult], total_years: int) -> PercentileBands:
        """Nearest-rank percentiles per year across trials.

        Trials that ended early contribute 0 for every missing year. The
        rank is ``floor(p / 100 * n)`` clamped to ``n - 1``. A negative
        horizon gives empty bands.
        """
        n_trials = len(trials)
        n_years = max(0, total_years + 1)
        balances = np.zeros((n_trials, n_years))
        for i, trial in enumerate(trials):
            path = trial.balances[:n_years]
            balances[i, : len(path)] = path

        sorted_balances = np.sort(balances, axis=0)
        bands = {}
        for level in PERCENTILE_LEVELS:
            index = min(int(math.floor(level / 100 * n_trials)), n_trials - 1)
            bands[f"p{level}"] = sorted_balances[index].copy()
        return PercentileBands(**bands)

    # ------------------------- Execution ------------------------- #
    def _batch_sizes(self, simulation_count: int, batch_size: int) -> List[int]:
        full, remainder = divmod(simulation_count, batch_size)
        return [batch_size] * full + ([remainder] if remainder else [])

    @staticmethod
    def _check_cancel(should_cancel: Optional[Callable[[], bool]]) -> None:
        if should_cancel is not None and should_cancel():
            raise SimulationCancelled("Simulation cancelled")

    def _execute_batches(
        self,
        params: SimulationParameters,
        batch_sizes: List[int],
        random_source: Optional[UniformSource],
        seed: Optional[int],
        n_workers: int,
        should_cancel: Optional[Callable[[], bool]],
    ) -> List[TrialResult]:
        trials: List[TrialResult] = []

        if random_source is not None:
            for size in batch_sizes:
                self._check_cancel(should_cancel)
                trials.extend(self.run_trials(params, size, random_source))
            return trials

        seed_sequences = np.random.SeedSequence(seed).spawn(len(batch_sizes))

        if n_workers <= 1 or len(batch_sizes) == 1:
            for size, seed_sequence in zip(batch_sizes, seed_sequences):
                self._check_cancel(should_cancel)
                trials.extend(_run_batch(params, size, seed_sequence))
            return trials

        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            futures = [
                executor.submit(_run_batch, params, size, seed_sequence)
                for size, seed_sequence in zip(batch_sizes, seed_sequences)
            ]
            try:
                for future in futures:
                    self._check_cancel(should_cancel)
                    trials.extend(future.result())
            except SimulationCancelled:
                for future in futures:
                    future.cancel()
                raise
        return trials

    def run_simulation(
        self,
        params: SimulationParameters,
        random_source: Optional[UniformSource] = None,
        seed: Optional[int] = None,
        n_workers: Optional[int] = None,
        batch_size: Optional[int] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> SimulationResult:
        """Run the Monte Carlo simulation.

        Args:
            params: Simulation parameters
            random_source: Zero-argument callable returning floats in [0, 1).
                When given, every trial draws from it serially and ``seed``
                and ``n_workers`` are ignored.
            seed: Seed for the per-batch generators (defaults to config)
            n_workers: Processes used for batches (defaults to config)
            batch_size: Trials per batch (defaults to config)
            should_cancel: Checked before each batch; True aborts the run

        Returns:
            SimulationResult with success rate and percentile bands

        Raises:
            ValidationError: If the simulation count is not positive
            SimulationCancelled: If ``should_cancel`` returned True
            SimulationError: If the simulation fails unexpectedly
        """
        simulation_count = validate_simulation_count(
            params.simulation_count
            if params.simulation_count is not None
            else self.config.default_simulation_count
        )
        seed = seed if seed is not None else self.config.default_seed
        n_workers = n_workers if n_workers is not None else self.config.max_workers
        batch_size = max(1, batch_size or self.config.trial_batch_size)

        years_to_retirement, total_years = calculate_horizon_years(
            params.current_age, params.retirement_age, params.retirement_duration
        )
        batch_sizes = self._batch_sizes(simulation_count, batch_size)
        logger.debug(
            "Running {} trials over {} years ({} to retirement) in {} batches",
            simulation_count,
            total_years,
            years_to_retirement,
            len(batch_sizes),
        )

        try:
            trials = self._execute_batches(
                params, batch_sizes, random_source, seed, n_workers, should_cancel
            )
            success_count = sum(1 for trial in trials if trial.success)
            success_rate = success_count / simulation_count * 100
            percentiles = self.aggregate_percentiles(trials, total_years)
        except SimulationCancelled:
            logger.info("Simulation cancelled before completion")
            raise
        except Exception as e:
            raise SimulationError(f"Simulation failed: {str(e)}") from e

        logger.debug("Simulation finished: success rate {}", format_percentage(success_rate))

        return SimulationResult(
            success_rate=success_rate,
            percentiles=percentiles,
            years_to_retirement=years_to_retirement,
            total_years=total_years,
            simulation_count=simulation_count,
        )
