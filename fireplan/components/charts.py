"""Chart components for the FIRE projection.

This module assembles chart series for the presentation layer:
- Age labels with the retirement year marked
- A tabular series frame (percentile bands, deterministic line, target)
- A Plotly figure with 10-90 and 25-75 percentile bands

Nothing here renders; callers decide how and where to display the
returned frame or figure.
"""

import math
from typing import List, Optional

import pandas as pd
import plotly.graph_objs as go

from fireplan.config import get_config
from fireplan.schemas import ProjectionResult, SimulationResult
from fireplan.utils import calculate_horizon_years


class ChartComponent:
    """Chart series for the FIRE calculator."""

    def __init__(self):
        self.config = get_config()

    def age_labels(self, current_age: int, retirement_age: int, total_years: int) -> List[str]:
        """One label per year, marking the retirement year."""
        years_to_retirement = max(0, retirement_age - current_age)
        labels = []
        for i in range(total_years + 1):
            if i == 0:
                labels.append(f"Age {current_age}")
            elif i == years_to_retirement:
                labels.append(f"Age {retirement_age} (Retire)")
            else:
                labels.append(f"Age {current_age + i}")
        return labels

    def build_series(
        self,
        projection: ProjectionResult,
        simulation: Optional[SimulationResult],
        current_age: int,
        retirement_age: int,
        retirement_duration: int,
    ) -> pd.DataFrame:
        """Chart series indexed by age label.

        The deterministic projection is cut to the simulated horizon. The
        FIRE target column holds ``inf`` when the target is unreachable.
        """
        _, total_years = calculate_horizon_years(current_age, retirement_age, retirement_duration)
        labels = self.age_labels(current_age, retirement_age, total_years)

        deterministic = list(projection.projection_data[: total_years + 1])
        deterministic += [math.nan] * (len(labels) - len(deterministic))

        series = pd.DataFrame(index=pd.Index(labels, name="age"))
        if simulation is not None:
            for name, values in simulation.percentiles.as_dict().items():
                series[name] = values
        series["deterministic"] = deterministic
        series["fire_target"] = projection.fire_number
        return series

    def build_figure(
        self,
        projection: ProjectionResult,
        simulation: Optional[SimulationResult],
        current_age: int,
        retirement_age: int,
        retirement_duration: int,
    ) -> go.Figure:
        """Projection chart with percentile bands and the FIRE target."""
        series = self.build_series(
            projection, simulation, current_age, retirement_age, retirement_duration
        )
        x = list(series.index)
        fig = go.Figure()

        if simulation is not None:
            # Outer band (P10 to P90), then inner band (P25 to P75)
            for upper, lower, name, fill in (
                ("p90", "p10", "10th-90th Percentile", "rgba(59, 130, 246, 0.1)"),
                ("p75", "p25", "25th-75th Percentile", "rgba(59, 130, 246, 0.2)"),
            ):
                fig.add_trace(
                    go.Scatter(
                        x=x,
                        y=series[upper],
                        name=upper.upper(),
                        line=dict(color="rgba(59, 130, 246, 0.0)", width=0),
                        showlegend=False,
                    )
                )
                fig.add_trace(
                    go.Scatter(
                        x=x,
                        y=series[lower],
                        name=name,
                        line=dict(color="rgba(59, 130, 246, 0.0)", width=0),
                        fill="tonexty",
                        fillcolor=fill,
                        showlegend=True,
                    )
                )
            fig.add_trace(
                go.Scatter(
                    x=x,
                    y=series["p50"],
                    name="Median (Monte Carlo)",
                    line=dict(color="rgb(59, 130, 246)", width=2),
                )
            )

        fig.add_trace(
            go.Scatter(
                x=x,
                y=series["deterministic"],
                name="Deterministic Projection",
                line=dict(color="rgb(16, 185, 129)", width=2),
                fill=None if simulation is not None else "tozeroy",
            )
        )

        if projection.reachable:
            fig.add_trace(
                go.Scatter(
                    x=x,
                    y=series["fire_target"],
                    name="FIRE Target",
                    line=dict(color="rgb(239, 68, 68)", width=2, dash="dash"),
                )
            )

        fig.update_layout(
            xaxis_title="Age",
            yaxis_title="Portfolio Value",
            hovermode="x unified",
            showlegend=True,
        )
        return fig

    def fire_age(self, current_age: int, projection: ProjectionResult) -> Optional[int]:
        """Age at which the FIRE number is first reached, or None."""
        if projection.never_reached or not projection.years_to_fire:
            return None
        return current_age + projection.years_to_fire

    def success_tier(self, success_rate: Optional[float]) -> Optional[str]:
        """Bucket a success rate into ``high``, ``medium`` or ``low``."""
        if success_rate is None:
            return None
        if success_rate >= self.config.high_success_threshold:
            return "high"
        if success_rate >= self.config.medium_success_threshold:
            return "medium"
        return "low"
