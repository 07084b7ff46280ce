"""Configuration management for the FIRE projection engine."""

from dataclasses import dataclass


@dataclass
class AppConfig:
    """Application configuration."""

    # Calculator defaults (percent values are whole percentages, e.g. 4 == 4%)
    default_current_net_worth: float = 0.0
    default_annual_expenses: float = 40000.0
    default_annual_savings: float = 20000.0
    default_expected_return: float = 7.0
    default_inflation: float = 2.0
    default_withdrawal_rate: float = 4.0
    default_current_age: int = 30
    default_retirement_age: int = 65
    default_retirement_duration: int = 30

    # Projection settings
    default_max_years: int = 50

    # Monte Carlo settings
    default_volatility: float = 15.0
    default_simulation_count: int = 1000
    default_seed: int = None
    trial_batch_size: int = 250  # trials per independent random stream
    max_workers: int = 1  # >1 runs batches in a process pool

    # Input derivation
    min_holding_shares: float = 0.0001
    min_years_invested: float = 0.1
    days_per_year: float = 365.25
    transfer_category: str = "Transfer"

    # Success-rate display tiers
    high_success_threshold: float = 80.0
    medium_success_threshold: float = 50.0


# Global configuration instance
config = AppConfig()


def get_config() -> AppConfig:
    """Get the application configuration."""
    return config


def update_config(**kwargs) -> None:
    """Update configuration with new values."""
    global config
    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            raise ValueError(f"Unknown configuration key: {key}")
