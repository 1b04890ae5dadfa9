"""
ODE Integration Engine

Forward simulation of network dynamics with replacement events, using
torchdiffeq or SciPy as the stepper.
"""

import numpy as np
import pandas as pd
import torch
import torch.nn as nn
from scipy.integrate import solve_ivp
from torchdiffeq import odeint
from typing import List, Mapping, Optional, Tuple
import warnings

from .config import ShapeParameters, SimulationConfig, check_solver_settings
from .exceptions import InvalidParameterError, NumericInstabilityError, SolverError
from .network import NetworkModel
from .perturbation import check_event_table
from .trajectory import Trajectory

# Tolerance for matching event times against sample times
TIME_ATOL = 1e-9


class ODEFunc(nn.Module):
    """
    ODE function wrapper for torchdiffeq.

    Implements dx/dt = f(t, x) with f the network's SQUAD vector field.
    """

    def __init__(self, network: NetworkModel, params: ShapeParameters):
        super().__init__()
        self.network = network
        self.params = params

    def forward(self, t: torch.Tensor, x: torch.Tensor) -> torch.Tensor:
        """
        Compute dx/dt.

        Parameters
        ----------
        t : torch.Tensor
            Current time (scalar)
        x : torch.Tensor
            Current state (n_nodes,)

        Returns
        -------
        dxdt : torch.Tensor
            Time derivative (n_nodes,)
        """
        x_np = x.detach().cpu().numpy()
        v_np = evaluate_field(self.network, float(t), x_np, self.params)
        return torch.from_numpy(v_np).to(x.device).type(x.dtype)


def evaluate_field(network: NetworkModel, t: float, x: np.ndarray,
                   params: ShapeParameters) -> np.ndarray:
    """Vector field with a warning when it leaves the finite range."""
    v = network.vector_field(t, x, params)
    if not np.all(np.isfinite(v)):
        bad = [node for node, value in zip(network.nodes, v) if not np.isfinite(value)]
        warnings.warn(
            f"Non-finite derivative at t={t:g} for nodes {bad} (h={params.h}, gamma={params.gamma})",
            NumericInstabilityError,
        )
    return v


class ODEIntegrator:
    """
    ODE integrator for network trajectories under replacement events.

    Integration is split at every event time. At an event time the affected
    nodes are overwritten in event-table order, then stepping resumes from
    the modified state.
    """

    def __init__(self,
                 network: NetworkModel,
                 params: ShapeParameters,
                 method: str = 'dopri5',
                 rtol: float = 1e-5,
                 atol: float = 1e-5,
                 backend: str = 'torchdiffeq',
                 verbose: bool = False):
        """
        Parameters
        ----------
        network : NetworkModel
            Network whose vector field is integrated
        params : ShapeParameters
            Steepness and decay
        method : str
            Solver method; torchdiffeq ('dopri5', 'rk4', 'euler', ...) or
            SciPy ('LSODA', 'RK45', 'BDF', ...) depending on ``backend``
        rtol : float
            Relative tolerance
        atol : float
            Absolute tolerance
        backend : str
            'torchdiffeq' or 'scipy'
        verbose : bool
            Print progress messages
        """
        check_solver_settings(method, backend, rtol, atol)
        if not isinstance(params, ShapeParameters):
            raise InvalidParameterError("params must be a ShapeParameters instance")

        self.network = network
        self.params = params
        self.method = method
        self.rtol = rtol
        self.atol = atol
        self.backend = backend
        self.verbose = verbose
        self.ode_func = ODEFunc(network, params)

    def integrate(self,
                  x0: np.ndarray,
                  t_eval: np.ndarray,
                  events: Optional[pd.DataFrame] = None) -> np.ndarray:
        """
        Integrate from an initial state, applying events on the way.

        Parameters
        ----------
        x0 : np.ndarray
            Initial state (n_nodes,) in ``network.nodes`` order
        t_eval : np.ndarray
            Strictly increasing sample times; integration runs from
            ``t_eval[0]`` to ``t_eval[-1]``
        events : pd.DataFrame, optional
            Event table (var, time, value, method)

        Returns
        -------
        states : np.ndarray
            States at ``t_eval`` (n_timepoints, n_nodes). A sample that
            coincides with an event time holds the post-event state.
        """
        x0 = np.array(x0, dtype=np.float64)
        if x0.shape != (len(self.network),):
            raise ValueError(f"x0 must have shape ({len(self.network)},); got {x0.shape}")
        t_eval = np.asarray(t_eval, dtype=np.float64)
        if t_eval.ndim != 1 or t_eval.size == 0:
            raise ValueError("t_eval must be a non-empty 1D array")
        if np.any(np.diff(t_eval) <= 0):
            raise ValueError("t_eval must be strictly increasing")

        t_start, t_end = float(t_eval[0]), float(t_eval[-1])
        schedule = self._event_schedule(events, t_start, t_end)

        if self.verbose:
            print(f"Integrating ODE ({self.backend}/{self.method})...")
            print(f"  Nodes: {len(self.network)}")
            print(f"  Time points: {t_eval.size}")
            print(f"  Event times: {len(schedule)}")

        states = np.empty((t_eval.size, len(self.network)), dtype=np.float64)
        state = x0
        current = t_start
        if schedule and np.isclose(schedule[0][0], t_start, rtol=0.0, atol=TIME_ATOL):
            state = self._apply(state, schedule.pop(0)[1])
        states[0] = state

        stops: List[Tuple[float, list]] = schedule + [(t_end, [])]
        for stop, changes in stops:
            if stop <= current + TIME_ATOL:
                continue
            inner = np.flatnonzero((t_eval > current + TIME_ATOL) & (t_eval < stop - TIME_ATOL))
            points = np.concatenate(([current], t_eval[inner], [stop]))
            solution = self._solve(state, points)
            states[inner] = solution[1:-1]
            state = self._apply(solution[-1], changes)
            hit = np.flatnonzero(np.isclose(t_eval, stop, rtol=0.0, atol=TIME_ATOL))
            if hit.size:
                states[hit[0]] = state
            current = stop

        if self.verbose:
            print(f"✓ Integration successful")
            print(f"  Trajectory shape: {states.shape}")

        return states

    def _event_schedule(self, events, t_start, t_end):
        """Group events by time: [(time, [(index, value), ...]), ...] in time order."""
        if events is None or len(events) == 0:
            return []
        check_event_table(events, self.network.nodes)

        ordered = events.sort_values("time", kind="mergesort")
        outside = ((ordered["time"] < t_start - TIME_ATOL) | (ordered["time"] > t_end + TIME_ATOL))
        if outside.any():
            warnings.warn(
                f"{int(outside.sum())} event(s) outside [{t_start}, {t_end}] are ignored"
            )
            ordered = ordered[~outside]

        schedule: List[Tuple[float, list]] = []
        for row in ordered.itertuples(index=False):
            time = float(row.time)
            change = (self.network.index(row.var), float(row.value))
            if schedule and abs(schedule[-1][0] - time) <= TIME_ATOL:
                schedule[-1][1].append(change)
            else:
                schedule.append((time, [change]))
        return schedule

    @staticmethod
    def _apply(state: np.ndarray, changes) -> np.ndarray:
        state = np.array(state, dtype=np.float64)
        # table order, so the last row for a node wins
        for index, value in changes:
            state[index] = value
        return state

    def _solve(self, state: np.ndarray, points: np.ndarray) -> np.ndarray:
        """States at ``points`` starting from ``state`` at ``points[0]``."""
        if self.backend == 'scipy':
            return self._solve_scipy(state, points)
        return self._solve_torchdiffeq(state, points)

    def _solve_torchdiffeq(self, state, points):
        y0 = torch.from_numpy(np.array(state, dtype=np.float64))
        t = torch.from_numpy(np.array(points, dtype=np.float64))
        try:
            with torch.no_grad():
                solution = odeint(self.ode_func, y0, t,
                                  method=self.method, rtol=self.rtol, atol=self.atol)
        except (AssertionError, RuntimeError) as e:
            raise SolverError(
                f"torchdiffeq ({self.method}) failed on [{points[0]}, {points[-1]}]: {e}"
            ) from e
        return solution.detach().cpu().numpy()

    def _solve_scipy(self, state, points):
        def rhs(t, y):
            return evaluate_field(self.network, t, y, self.params)

        solution = solve_ivp(rhs, (float(points[0]), float(points[-1])), state,
                             method=self.method, t_eval=points,
                             rtol=self.rtol, atol=self.atol)
        if not solution.success:
            raise SolverError(
                f"SciPy ({self.method}) failed on [{points[0]}, {points[-1]}]: {solution.message}"
            )
        return solution.y.T


def simulate_network(network: NetworkModel,
                     initial_state: Mapping[str, float],
                     config: Optional[SimulationConfig] = None,
                     events: Optional[pd.DataFrame] = None,
                     verbose: bool = False) -> Trajectory:
    """
    Simulate a network from an initial state over ``[0, config.t_max]``.

    Parameters
    ----------
    network : NetworkModel
        Network to simulate
    initial_state : mapping
        Node name -> initial activation (all nodes required)
    config : SimulationConfig, optional
        Time grid, solver and shape parameters; defaults to SimulationConfig()
    events : pd.DataFrame, optional
        Event table, e.g. from ``perturb_nodes``
    verbose : bool
        Print progress messages

    Returns
    -------
    trajectory : Trajectory
        Activations sampled every ``config.step_size``
    """
    config = config or SimulationConfig()
    integrator = ODEIntegrator(
        network,
        config.shape,
        method=config.method,
        rtol=config.rtol,
        atol=config.atol,
        backend=config.backend,
        verbose=verbose,
    )
    x0 = network.state_vector(initial_state)
    t_eval = config.time_grid()
    states = integrator.integrate(x0, t_eval, events)
    return Trajectory(t_eval, states, network.nodes)
