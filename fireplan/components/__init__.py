"""Presentation-facing components for the FIRE projection engine."""

from .charts import ChartComponent

__all__ = [
    "ChartComponent",
]
