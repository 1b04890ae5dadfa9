"""
Perturbation Module

Pulse perturbations expanded into step-granular event tables.

An event table is a DataFrame with one row per forced value::

    var    time   value  method
    X     10.00    1.0    rep
    X     10.01    1.0    rep

``method`` is always ``"rep"``: at ``time`` the solver replaces the
activation of ``var`` with ``value``. Rows are applied in table order, so a
later row for the same node and time overrides an earlier one.
"""

import warnings
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import ceil_to_grid, snap_to_grid
from .exceptions import InvalidParameterError, InvalidPerturbationError, MissingNodeError

EVENT_COLUMNS = ["var", "time", "value", "method"]
REPLACE = "rep"


@dataclass(frozen=True)
class Perturbation:
    """Force ``node`` to ``intensity`` for ``duration`` steps starting at ``at_time``."""
    node: str
    at_time: float
    duration: int = 1
    intensity: float = 1.0

    def __post_init__(self) -> None:
        if not isinstance(self.node, str) or not self.node:
            raise InvalidPerturbationError(f"node must be a non-empty string; got {self.node!r}")
        duration = self.duration
        if isinstance(duration, bool) or not isinstance(duration, Real):
            raise InvalidPerturbationError(f"duration must be an integer; got {duration!r}")
        if not isinstance(duration, Integral):
            if not float(duration).is_integer():
                raise InvalidPerturbationError(f"duration must be an integer; got {duration}")
        if duration < 0:
            raise InvalidPerturbationError(f"duration must be non-negative; got {duration}")
        object.__setattr__(self, "duration", int(duration))
        if not np.isfinite(self.at_time):
            raise InvalidPerturbationError(f"at_time must be finite; got {self.at_time}")
        if not np.isfinite(self.intensity):
            raise InvalidPerturbationError(f"intensity must be finite; got {self.intensity}")
        object.__setattr__(self, "at_time", float(self.at_time))
        object.__setattr__(self, "intensity", float(self.intensity))


class PerturbationScheduler:
    """Build event tables on a fixed step grid."""

    def __init__(self, step_size: float, nodes: Optional[Iterable[str]] = None):
        """
        Parameters
        ----------
        step_size : float
            Simulation step; event times are multiples of it
        nodes : iterable of str, optional
            Valid targets (e.g. ``network.nodes``). When given, perturbing any
            other node raises MissingNodeError.
        """
        if not np.isfinite(step_size) or step_size <= 0:
            raise InvalidParameterError(f"step_size must be positive; got {step_size}")
        self.step_size = float(step_size)
        self.nodes = None if nodes is None else frozenset(nodes)

    def expand(self, perturbation: Perturbation) -> pd.DataFrame:
        """Rows for a single perturbation: ``duration + 1`` grid points, both ends included."""
        if self.nodes is not None and perturbation.node not in self.nodes:
            raise MissingNodeError(perturbation.node, "perturbation target is not part of the network")

        # first grid point at or after at_time
        start = float(ceil_to_grid(perturbation.at_time, self.step_size))
        if not np.isclose(start, perturbation.at_time, rtol=0.0, atol=1e-9):
            warnings.warn(
                f"Perturbation of '{perturbation.node}' at t={perturbation.at_time} "
                f"moved to the next grid point t={start}"
            )

        offsets = np.arange(perturbation.duration + 1) * self.step_size
        times = snap_to_grid(start + offsets, self.step_size)
        n = len(times)
        return pd.DataFrame({
            "var": [perturbation.node] * n,
            "time": times,
            "value": np.full(n, perturbation.intensity, dtype=np.float64),
            "method": [REPLACE] * n,
        }, columns=EVENT_COLUMNS)

    def build(self, perturbations: Sequence[Perturbation]) -> pd.DataFrame:
        """
        Concatenate the rows of all perturbations in input order.

        Parameters
        ----------
        perturbations : sequence of Perturbation
            Pulses to schedule; no sorting is applied

        Returns
        -------
        events : pd.DataFrame
            Event table with columns var, time, value, method
        """
        frames = [self.expand(p) for p in perturbations]
        if not frames:
            return empty_event_table()
        return pd.concat(frames, ignore_index=True)

    def from_lists(self,
                   nodes: Sequence[str],
                   at_times: Sequence[float],
                   durations: Sequence[int],
                   intensities: Sequence[float]) -> pd.DataFrame:
        """Event table from parallel lists, one entry per perturbation."""
        lengths = {len(nodes), len(at_times), len(durations), len(intensities)}
        if len(lengths) != 1:
            raise InvalidPerturbationError(
                "nodes, at_times, durations and intensities must have the same length; got "
                f"{len(nodes)}, {len(at_times)}, {len(durations)}, {len(intensities)}"
            )
        perturbations = [
            Perturbation(node=node, at_time=at, duration=d, intensity=value)
            for node, at, d, value in zip(nodes, at_times, durations, intensities)
        ]
        return self.build(perturbations)

    def windows(self, events: pd.DataFrame) -> List[Perturbation]:
        """
        Recover perturbation windows from an event table.

        Consecutive rows for the same node and value, one step apart, are
        merged into one window. Tables built from non-adjacent windows give
        back the original perturbations (with start times on the grid).
        """
        check_event_table(events)
        result: List[Perturbation] = []
        current = None
        for row in events.itertuples(index=False):
            time = float(row.time)
            value = float(row.value)
            if current is not None:
                node, start, steps, intensity, last = current
                if (row.var == node and value == intensity
                        and np.isclose(time - last, self.step_size, rtol=0.0, atol=1e-9)):
                    current = (node, start, steps + 1, intensity, time)
                    continue
                result.append(Perturbation(node, start, steps, intensity))
            current = (row.var, time, 0, value, time)
        if current is not None:
            node, start, steps, intensity, _ = current
            result.append(Perturbation(node, start, steps, intensity))
        return result


def empty_event_table() -> pd.DataFrame:
    return pd.DataFrame({
        "var": pd.Series(dtype=object),
        "time": pd.Series(dtype=np.float64),
        "value": pd.Series(dtype=np.float64),
        "method": pd.Series(dtype=object),
    }, columns=EVENT_COLUMNS)


def check_event_table(events: pd.DataFrame, nodes: Optional[Iterable[str]] = None) -> None:
    """Raise if ``events`` lacks the event columns, uses another method, or targets unknown nodes."""
    missing = [column for column in EVENT_COLUMNS if column not in events.columns]
    if missing:
        raise InvalidPerturbationError(f"Event table is missing columns: {missing}")
    methods = set(events["method"])
    if methods - {REPLACE}:
        raise InvalidPerturbationError(
            f"Only replacement events ('{REPLACE}') are supported; got {sorted(methods)}"
        )
    if nodes is not None:
        known = set(nodes)
        for node in events["var"]:
            if node not in known:
                raise MissingNodeError(node, "event target is not part of the network")


def perturb_nodes(nodes: Sequence[str],
                  at_times: Sequence[float],
                  durations: Sequence[int],
                  intensities: Sequence[float],
                  step_size: float,
                  network=None) -> pd.DataFrame:
    """
    Build an event table from parallel perturbation lists.

    Parameters
    ----------
    nodes : sequence of str
        Node forced by each perturbation
    at_times : sequence of float
        Start time of each perturbation
    durations : sequence of int
        Length of each perturbation in steps (0 = a single event)
    intensities : sequence of float
        Forced value of each perturbation
    step_size : float
        Simulation step size
    network : NetworkModel, optional
        Checks that every target is a node of this network

    Returns
    -------
    events : pd.DataFrame
        Event table (var, time, value, method)

    Examples
    --------
    >>> perturb_nodes(["X"], [10], [1], [0.25], 0.01)
      var   time  value method
    0   X  10.00   0.25    rep
    1   X  10.01   0.25    rep
    """
    valid = None if network is None else network.nodes
    scheduler = PerturbationScheduler(step_size, nodes=valid)
    return scheduler.from_lists(nodes, at_times, durations, intensities)


def build_event_table(perturbations: Sequence[Perturbation],
                      step_size: float,
                      network=None) -> pd.DataFrame:
    """Event table from Perturbation records, concatenated in input order."""
    valid = None if network is None else network.nodes
    return PerturbationScheduler(step_size, nodes=valid).build(perturbations)


def event_windows(events: pd.DataFrame, step_size: float) -> List[Perturbation]:
    """Perturbation windows covered by an event table (see ``PerturbationScheduler.windows``)."""
    return PerturbationScheduler(step_size).windows(events)
