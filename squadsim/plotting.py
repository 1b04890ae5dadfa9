"""
Plotting

Time-course figures for simulated trajectories.
"""

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from typing import Mapping, Optional

from .trajectory import Trajectory


def relabel(frame: pd.DataFrame, labels: Mapping[str, str]) -> pd.DataFrame:
    """Rename node columns to display labels; ``time`` and unknown columns are kept."""
    return frame.rename(columns={k: v for k, v in labels.items() if k != "time"})


def plot_trajectory(trajectory: Trajectory,
                    title: str = "",
                    xlabel: str = "time",
                    ylabel: str = "Level of activation",
                    labels: Optional[Mapping[str, str]] = None) -> go.Figure:
    """
    Plot node activations over time, one line per node.

    Parameters
    ----------
    trajectory : Trajectory
        Simulated trajectory
    title, xlabel, ylabel : str
        Figure and axis titles
    labels : mapping, optional
        Node -> display label (e.g. ``EXAMPLE_LABELS``)

    Returns
    -------
    fig : go.Figure
        Figure with the y-axis fixed to [0, 1]
    """
    labels = dict(labels or {})
    colors = px.colors.qualitative.Set1
    fig = go.Figure()

    for idx, node in enumerate(trajectory.nodes):
        fig.add_trace(go.Scatter(
            x=trajectory.times,
            y=trajectory[node],
            mode='lines',
            name=labels.get(node, node),
            line=dict(color=colors[idx % len(colors)], width=3)
        ))

    fig.update_layout(
        title=title,
        xaxis_title=xlabel,
        yaxis_title=ylabel,
        yaxis=dict(range=[0, 1.0]),
        xaxis=dict(range=[float(trajectory.times[0]), float(trajectory.times[-1])]),
        template='simple_white',
        hovermode='x unified'
    )
    return fig


def plot_effect_size(reference: Trajectory, perturbed: Trajectory,
                     title: str = "Effect size") -> go.Figure:
    """Plot L2 distance between two trajectories over time."""
    distances = np.linalg.norm(perturbed.states - reference.states, axis=1)

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=reference.times,
        y=distances,
        mode='lines',
        fill='tozeroy',
        name='L2 Distance',
    ))
    fig.update_layout(
        title=title,
        xaxis_title='time',
        yaxis_title='L2 Distance',
        template='simple_white'
    )
    return fig
