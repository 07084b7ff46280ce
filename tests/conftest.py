"""Shared fixtures for the FIRE projection engine tests."""

import pytest

from fireplan.config import get_config
from fireplan.schemas import ProjectionParameters, SimulationParameters


class CyclingSource:
    """Uniform source that replays a fixed list of values."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def __call__(self):
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


@pytest.fixture
def cycling_source():
    return CyclingSource


@pytest.fixture
def projection_params():
    return ProjectionParameters(
        current_net_worth=100000,
        annual_savings=20000,
        annual_expenses=40000,
        expected_return=7,
        inflation=2,
        withdrawal_rate=4,
    )


@pytest.fixture
def retiree_params():
    return SimulationParameters(
        current_net_worth=1000000,
        annual_savings=0,
        annual_expenses=40000,
        expected_return=7,
        inflation=2,
        volatility=15,
        current_age=65,
        retirement_age=65,
        retirement_duration=30,
        simulation_count=500,
    )


@pytest.fixture
def saver_params():
    return SimulationParameters(
        current_net_worth=500000,
        annual_savings=30000,
        annual_expenses=40000,
        expected_return=7,
        inflation=2,
        volatility=15,
        current_age=40,
        retirement_age=65,
        retirement_duration=30,
        simulation_count=500,
    )


@pytest.fixture(autouse=True)
def restore_config():
    """Undo any config changes a test makes."""
    config = get_config()
    saved = dict(vars(config))
    yield config
    for key, value in saved.items():
        setattr(config, key, value)
