import math
from dataclasses import replace

import pytest

from fireplan import project_deterministic, simulate_monte_carlo
from fireplan.components import ChartComponent
from fireplan.schemas import ProjectionParameters, SimulationParameters

SIMULATION = SimulationParameters(
    current_net_worth=300000,
    annual_savings=20000,
    annual_expenses=40000,
    expected_return=7,
    inflation=2,
    volatility=15,
    current_age=60,
    retirement_age=62,
    retirement_duration=3,
    simulation_count=50,
)
PROJECTION = ProjectionParameters(
    current_net_worth=300000,
    annual_savings=20000,
    annual_expenses=40000,
    expected_return=7,
    inflation=2,
    withdrawal_rate=4,
)


@pytest.fixture
def results():
    return project_deterministic(PROJECTION), simulate_monte_carlo(SIMULATION, seed=1)


def test_age_labels_mark_retirement():
    labels = ChartComponent().age_labels(60, 62, 4)
    assert labels == ["Age 60", "Age 61", "Age 62 (Retire)", "Age 63", "Age 64"]


def test_age_labels_already_retired():
    labels = ChartComponent().age_labels(70, 65, 2)
    assert labels == ["Age 70", "Age 71", "Age 72"]


def test_build_series(results):
    projection, simulation = results
    series = ChartComponent().build_series(projection, simulation, 60, 62, 3)

    assert list(series.columns) == ["p10", "p25", "p50", "p75", "p90", "deterministic", "fire_target"]
    assert len(series) == 6
    assert series["deterministic"].iloc[0] == 300000
    assert (series["fire_target"] == projection.fire_number).all()


def test_build_series_without_simulation(results):
    projection, _ = results
    series = ChartComponent().build_series(projection, None, 60, 62, 3)
    assert list(series.columns) == ["deterministic", "fire_target"]


def test_short_projection_is_padded():
    projection = project_deterministic(replace(PROJECTION, max_years=2))
    series = ChartComponent().build_series(projection, None, 60, 62, 3)

    assert len(series) == 6
    assert math.isnan(series["deterministic"].iloc[-1])


@pytest.mark.parametrize("retirement_duration, rows", [(1, 4), (3, 6), (10, 13)])
def test_series_length_follows_retirement_duration(retirement_duration, rows):
    projection = project_deterministic(PROJECTION)
    series = ChartComponent().build_series(projection, None, 60, 62, retirement_duration)

    assert len(series) == rows
    assert series.index[-1] == f"Age {60 + rows - 1}"


def test_fire_age(results):
    projection, _ = results
    assert projection.years_to_fire is not None
    assert ChartComponent().fire_age(60, projection) == 60 + projection.years_to_fire


def test_fire_age_when_never_reached():
    projection = project_deterministic(replace(PROJECTION, withdrawal_rate=2))
    assert ChartComponent().fire_age(60, projection) is None


def test_figure_traces(results):
    projection, simulation = results
    fig = ChartComponent().build_figure(projection, simulation, 60, 62, 3)

    names = [trace.name for trace in fig.data]
    assert len(names) == 7
    assert "Deterministic Projection" in names
    assert "FIRE Target" in names


def test_figure_omits_unreachable_target():
    projection = project_deterministic(replace(PROJECTION, withdrawal_rate=2))
    fig = ChartComponent().build_figure(projection, None, 60, 62, 3)

    assert [trace.name for trace in fig.data] == ["Deterministic Projection"]


@pytest.mark.parametrize(
    "success_rate, tier",
    [
        (None, None),
        (100.0, "high"),
        (80.0, "high"),
        (79.9, "medium"),
        (50.0, "medium"),
        (12.5, "low"),
    ],
)
def test_success_tier(success_rate, tier):
    assert ChartComponent().success_tier(success_rate) == tier
