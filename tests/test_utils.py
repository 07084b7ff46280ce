import math

import pytest

from fireplan.config import get_config, update_config
from fireplan.schemas import ValidationError
from fireplan.utils import (
    calculate_horizon_years,
    format_currency,
    format_percentage,
    real_return_rate,
    real_withdrawal_rate,
    round_half_up,
    validate_age_inputs,
    validate_financial_inputs,
    validate_simulation_count,
)


def test_real_withdrawal_rate_uses_fisher_relation():
    assert real_withdrawal_rate(4, 2) == pytest.approx(1 / 51)
    assert real_withdrawal_rate(4, 4) == 0


def test_real_return_is_simple_difference():
    assert real_return_rate(7, 2) == pytest.approx(0.05)
    assert real_return_rate(0, 3) == pytest.approx(-0.03)


@pytest.mark.parametrize(
    "current_age, retirement_age, duration, expected",
    [
        (40, 65, 30, (25, 55)),
        (65, 65, 30, (0, 30)),
        (70, 65, 20, (0, 20)),
        (30, 31, 0, (1, 1)),
    ],
)
def test_calculate_horizon_years(current_age, retirement_age, duration, expected):
    assert calculate_horizon_years(current_age, retirement_age, duration) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (2.5, 3.0),
        (-2.5, -2.0),
        (2039999.9999999998, 2040000.0),
        (1.49, 1.0),
    ],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_round_half_up_passes_non_finite():
    assert math.isinf(round_half_up(math.inf))
    assert math.isnan(round_half_up(math.nan))


class TestValidation:
    """Caller-side validation helpers."""

    @pytest.mark.parametrize("count", [0, -1, 2.5, True, None])
    def test_bad_simulation_count(self, count):
        with pytest.raises(ValidationError):
            validate_simulation_count(count)

    def test_good_simulation_count(self):
        assert validate_simulation_count(1000) == 1000

    def test_negative_age(self):
        with pytest.raises(ValidationError):
            validate_age_inputs(-1, 65, 30)

    def test_negative_duration(self):
        with pytest.raises(ValidationError):
            validate_age_inputs(30, 65, -1)

    def test_already_retired_is_valid(self):
        validate_age_inputs(70, 65, 20)

    @pytest.mark.parametrize("value", [math.nan, math.inf, "100", None, False])
    def test_non_finite_financial_input(self, value):
        with pytest.raises(ValidationError):
            validate_financial_inputs(current_net_worth=value)

    def test_negative_net_worth_allowed(self):
        validate_financial_inputs(current_net_worth=-1000, annual_savings=-50, annual_expenses=0)

    def test_negative_expenses_rejected(self):
        with pytest.raises(ValidationError):
            validate_financial_inputs(annual_expenses=-1)


@pytest.mark.parametrize(
    "amount, expected",
    [
        (2_040_000, "$2.0M"),
        (-15_500, "-$15.5K"),
        (999, "$999"),
        (math.inf, "unreachable"),
    ],
)
def test_format_currency(amount, expected):
    assert format_currency(amount) == expected


def test_format_percentage():
    assert format_percentage(87.26) == "87.3%"
    assert format_percentage(50, decimals=0) == "50%"


def test_update_config():
    update_config(default_volatility=20.0)
    assert get_config().default_volatility == 20.0

    with pytest.raises(ValueError):
        update_config(not_a_setting=1)
