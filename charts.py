# charts.py

from typing import Dict, Iterable, Optional

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from crop_config import VPDBand


ISLAND_COLORS = {
    "I1": "#1f77b4",
    "I2": "#ff7f0e",
    "I3": "#2ca02c",
    "I4": "#d62728",
    "I5": "#9467bd",
    "I6": "#8c564b",
}

CATEGORY_COLORS = {
    "optimal": "#22c55e",
    "acceptable": "#eab308",
    "too_low": "#3b82f6",
    "too_high": "#ef4444",
}

STAGE_COLORS = {
    "warming": "rgba(249, 115, 22, 0.08)",
    "stable_day": "rgba(234, 179, 8, 0.08)",
    "cooling": "rgba(59, 130, 246, 0.08)",
    "stable_night": "rgba(99, 102, 241, 0.08)",
}


def _layout(fig, height: int):
    fig.update_layout(
        height=height,
        margin=dict(l=60, r=20, t=40, b=40),
        hovermode="x unified",
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
    )
    return fig


def vpd_timeline_figure(
    frame: pd.DataFrame,
    island_ids: Iterable[str],
    band: Optional[VPDBand] = None,
    show_consumption: bool = False,
):
    """VPD per island over time with the optimal band shaded and optional dehumidifier load."""
    fig = make_subplots(specs=[[{"secondary_y": True}]])

    for island_id in island_ids:
        column = f"{island_id}_vpd"
        if column not in frame.columns or frame[column].isna().all():
            continue
        fig.add_trace(
            go.Scatter(
                x=frame["time"],
                y=frame[column],
                mode="lines",
                name=f"{island_id} VPD",
                line=dict(color=ISLAND_COLORS.get(island_id)),
                connectgaps=False,
                hovertemplate=f"Time: %{{x}}<br>{island_id}: %{{y:.2f}} kPa<extra></extra>",
            ),
            secondary_y=False,
        )

    if band is not None:
        fig.add_hrect(
            y0=band.optimal_min,
            y1=band.optimal_max,
            fillcolor="green",
            opacity=0.12,
            line_width=0,
        )
        for y in (band.optimal_min, band.optimal_max):
            fig.add_hline(y=y, line_dash="dash", line_color="green", line_width=1)

    if show_consumption and "total_consumption_kw" in frame.columns and not frame["total_consumption_kw"].isna().all():
        fig.add_trace(
            go.Bar(
                x=frame["time"],
                y=frame["total_consumption_kw"],
                name="Dehumidifiers (kW)",
                marker_color="rgba(148, 163, 184, 0.4)",
                hovertemplate="Time: %{x}<br>Load: %{y:.1f} kW<extra></extra>",
            ),
            secondary_y=True,
        )
        fig.update_yaxes(title_text="Consumption (kW)", secondary_y=True)

    fig.update_yaxes(title_text="VPD (kPa)", secondary_y=False)
    fig.update_xaxes(title_text="Time")
    return _layout(fig, 500)


def island_summary_figure(stats: Dict[str, object]):
    """Average VPD per island with min-max whiskers."""
    ids = [i for i, s in stats.items() if s.vpd is not None]
    avg = [stats[i].vpd.avg for i in ids]
    fig = go.Figure(
        go.Bar(
            x=ids,
            y=avg,
            marker_color=[ISLAND_COLORS.get(i, "#64748b") for i in ids],
            error_y=dict(
                type="data",
                symmetric=False,
                array=[stats[i].vpd.max - stats[i].vpd.avg for i in ids],
                arrayminus=[stats[i].vpd.avg - stats[i].vpd.min for i in ids],
            ),
            hovertemplate="%{x}<br>Avg VPD: %{y:.2f} kPa<extra></extra>",
        )
    )
    fig.update_yaxes(title_text="VPD (kPa)")
    fig.update_xaxes(title_text="Island")
    return _layout(fig, 380)


def thermal_figure(profile: pd.DataFrame, metric: str = "temperature"):
    """Temperature (or gradient) over time with the thermal stages shaded."""
    label = "Temperature (°C)" if metric == "temperature" else "Gradient (°C/h)"
    fig = go.Figure(
        go.Scatter(
            x=profile["time"],
            y=profile[metric],
            mode="lines",
            name=label,
            hovertemplate=f"Time: %{{x}}<br>{label}: %{{y:.2f}}<extra></extra>",
        )
    )

    # Shade each contiguous run of the same stage
    if not profile.empty:
        run_start = 0
        stages = profile["stage"].tolist()
        times = profile["time"].tolist()
        for i in range(1, len(stages) + 1):
            if i == len(stages) or stages[i] != stages[run_start]:
                fig.add_vrect(
                    x0=times[run_start],
                    x1=times[i - 1],
                    fillcolor=STAGE_COLORS.get(stages[run_start], "rgba(0,0,0,0.05)"),
                    line_width=0,
                )
                run_start = i

    if metric == "gradient":
        fig.add_hline(y=0, line_dash="dot", line_color="gray")

    fig.update_yaxes(title_text=label)
    fig.update_xaxes(title_text="Time")
    fig.update_layout(annotations=[])
    return _layout(fig, 420)


def vpd_surface_figure(surface: pd.DataFrame):
    """Heatmap of VPD over the temperature x humidity grid."""
    grid = surface.pivot(index="humidity", columns="temperature", values="vpd")
    fig = go.Figure(
        go.Heatmap(
            x=grid.columns,
            y=grid.index,
            z=grid.values,
            colorscale="RdYlGn_r",
            colorbar=dict(title="VPD (kPa)"),
            hovertemplate="Temp: %{x:.1f} °C<br>RH: %{y:.0f} %<br>VPD: %{z:.2f} kPa<extra></extra>",
        )
    )
    optimal = surface[surface["category"] == "optimal"]
    if not optimal.empty:
        fig.add_trace(
            go.Scatter(
                x=optimal["temperature"],
                y=optimal["humidity"],
                mode="markers",
                name="Optimal",
                marker=dict(symbol="circle-open", color=CATEGORY_COLORS["optimal"], size=7),
                hoverinfo="skip",
            )
        )
    fig.update_xaxes(title_text="Temperature (°C)")
    fig.update_yaxes(title_text="Relative humidity (%)")
    _layout(fig, 480)
    fig.update_layout(hovermode="closest")
    return fig
