"""Simulation output: node activations sampled over time."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd

from .exceptions import MissingNodeError


@dataclass(frozen=True, eq=False)
class Trajectory:
    """Read-only time series of all node activations of one run."""
    times: np.ndarray
    states: np.ndarray
    nodes: Tuple[str, ...]

    def __post_init__(self) -> None:
        times = np.array(self.times, dtype=np.float64)
        states = np.array(self.states, dtype=np.float64)
        nodes = tuple(self.nodes)
        if times.ndim != 1:
            raise ValueError("times must be a 1D array")
        if states.shape != (times.size, len(nodes)):
            raise ValueError(
                f"states must have shape ({times.size}, {len(nodes)}); got {states.shape}"
            )
        times.setflags(write=False)
        states.setflags(write=False)
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "states", states)
        object.__setattr__(self, "nodes", nodes)

    def __len__(self) -> int:
        return self.times.size

    def __getitem__(self, node: str) -> np.ndarray:
        return self.states[:, self._column(node)]

    def _column(self, node: str) -> int:
        try:
            return self.nodes.index(node)
        except ValueError:
            raise MissingNodeError(node, "not part of the trajectory") from None

    def at(self, t: float) -> Dict[str, float]:
        """Activations at time ``t``; linear interpolation between samples."""
        if t < self.times[0] - 1e-9 or t > self.times[-1] + 1e-9:
            raise ValueError(f"t={t} is outside [{self.times[0]}, {self.times[-1]}]")
        hits = np.flatnonzero(np.isclose(self.times, t, rtol=0.0, atol=1e-9))
        if hits.size:
            row = self.states[hits[-1]]
        else:
            row = np.array([np.interp(t, self.times, self.states[:, j]) for j in range(len(self.nodes))])
        return dict(zip(self.nodes, row.tolist()))

    def final_state(self) -> Dict[str, float]:
        return dict(zip(self.nodes, self.states[-1].tolist()))

    def to_frame(self, labels: Dict[str, str] | None = None) -> pd.DataFrame:
        """DataFrame with a ``time`` column followed by one column per node."""
        frame = pd.DataFrame(self.states, columns=list(self.nodes))
        frame.insert(0, "time", self.times)
        if labels:
            frame = frame.rename(columns=dict(labels))
        return frame

    def select(self, nodes: Sequence[str]) -> "Trajectory":
        """Trajectory restricted to ``nodes``."""
        columns = [self._column(node) for node in nodes]
        return Trajectory(self.times, self.states[:, columns], tuple(nodes))
